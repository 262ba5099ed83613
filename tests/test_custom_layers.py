# -*- coding: UTF-8 -*-

import numpy as np
import pytest
import torch
import torch.nn.functional as F

from pgstyle.utils.custom_layers import lerp, Blur2d, PixelNorm, instance_norm_2d, \
                                        concat_mbstd_layer, add_channel_noise, \
                                        Conv2dEx, ConvTranspose2dEx, LinearEx

#++++++++++++++++++++++++++++++++++++++++++++++++++++++++++++++++++++++++++++++#

def test_lerp_endpoints():
  a = torch.randn( 3, 5 ); b = torch.randn( 3, 5 )
  assert torch.equal( lerp( a, b, 0. ), a )
  assert torch.allclose( lerp( a, b, 1. ), b )
  assert torch.allclose( lerp( a, b, .25 ), a + .25 * ( b - a ) )

def test_lerp_clamps_rate():
  a = torch.zeros( 4 ); b = torch.ones( 4 )
  assert torch.allclose( lerp( a, b, 3. ), b )
  assert torch.allclose( lerp( a, b, -2. ), a )

#++++++++++++++++++++++++++++++++++++++++++++++++++++++++++++++++++++++++++++++#

def test_linear_wscale_and_output():
  layer = LinearEx( nin_feat = 50, nout_feat = 7, gain = 1.5 )
  assert layer.wscale == pytest.approx( 1.5 / np.sqrt( 50 ) )
  assert torch.all( layer.linear.bias == 0 )
  assert not any( p is layer.wscale for p in layer.parameters() )

  with torch.no_grad():
    layer.linear.bias.normal_()
  x = torch.randn( 6, 50 )
  expected = x @ ( layer.linear.weight * layer.wscale ).t() + layer.linear.bias
  assert torch.allclose( layer( x ), expected, atol = 1e-5 )

def test_conv_wscale_uses_input_channels_and_kernel():
  conv = Conv2dEx( ni = 8, nf = 4, ks = 3, padding = 1 )
  assert conv.wscale == pytest.approx( np.sqrt( 2 ) / np.sqrt( 8 * 3 * 3 ) )

  x = torch.randn( 2, 8, 5, 5 )
  expected = F.conv2d( x, conv.conv2d.weight * conv.wscale, conv.conv2d.bias, padding = 1 )
  assert torch.allclose( conv( x ), expected, atol = 1e-5 )

def test_transposed_conv_doubles_resolution():
  upconv = ConvTranspose2dEx( ni = 6, nf = 3 )
  assert upconv.wscale == pytest.approx( np.sqrt( 2 ) / np.sqrt( 6 * 3 * 3 ) )
  assert upconv( torch.randn( 2, 6, 4, 4 ) ).shape == ( 2, 3, 8, 8, )

def test_weights_start_standard_normal():
  layer = LinearEx( nin_feat = 256, nout_feat = 256 )
  w = layer.linear.weight
  assert abs( w.mean().item() ) < .02
  assert abs( w.std().item() - 1. ) < .02

#++++++++++++++++++++++++++++++++++++++++++++++++++++++++++++++++++++++++++++++#

def test_instance_norm_zero_mean_unit_variance():
  x = torch.randn( 3, 5, 8, 8 ) * 4. + 2.
  y = instance_norm_2d( x )
  assert torch.allclose( y.mean( dim = ( 2, 3, ) ), torch.zeros( 3, 5 ), atol = 1e-5 )
  assert torch.allclose( y.var( dim = ( 2, 3, ), unbiased = False ), torch.ones( 3, 5 ), atol = 1e-4 )

def test_pixel_norm_unit_mean_square():
  y = PixelNorm()( torch.randn( 4, 16 ) * 3. )
  assert torch.allclose( ( y**2 ).mean( dim = 1 ), torch.ones( 4 ), atol = 1e-5 )

def test_blur_preserves_constant_interior():
  blur = Blur2d( num_channels = 2, blur_type = 'box' )
  y = blur( torch.ones( 1, 2, 6, 6 ) )
  assert y.shape == ( 1, 2, 6, 6, )
  assert torch.allclose( y[ ..., 1:-1, 1:-1 ], torch.ones( 1, 2, 4, 4 ) )

def test_blur_rejects_unknown_type():
  with pytest.raises( ValueError ):
    Blur2d( num_channels = 2, blur_type = 'gaussian' )

#++++++++++++++++++++++++++++++++++++++++++++++++++++++++++++++++++++++++++++++#

def test_mbstd_identical_images_is_exactly_zero():
  x = torch.randn( 1, 16, 4, 4 ).expand( 4, -1, -1, -1 ).contiguous()
  y = concat_mbstd_layer( x, group_size = 4 )
  assert y.shape == ( 4, 17, 4, 4, )
  assert torch.all( y[ :, -1 ] == 0. )
  assert torch.equal( y[ :, :-1 ], x )

def test_mbstd_positive_for_distinct_images():
  y = concat_mbstd_layer( torch.randn( 8, 4, 4, 4 ), group_size = 4 )
  assert torch.all( y[ :, -1 ] > 0. )
  # every sample of a group sees the same statistic
  assert torch.allclose( y[ 0, -1 ], y[ 3, -1 ] )

def test_mbstd_rejects_indivisible_batch():
  with pytest.raises( ValueError ):
    concat_mbstd_layer( torch.randn( 6, 4, 4, 4 ), group_size = 4 )
  # a batch smaller than the group is not divisible either
  with pytest.raises( ValueError ):
    concat_mbstd_layer( torch.randn( 2, 4, 4, 4 ), group_size = 4 )

def test_channel_noise_is_identity_at_zero_scale():
  x = torch.randn( 2, 3, 4, 4 )
  assert add_channel_noise( x, 0. ) is x
  y = add_channel_noise( x, .5 )
  assert y.shape == x.shape and not torch.equal( y, x )
