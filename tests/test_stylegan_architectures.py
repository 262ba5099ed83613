# -*- coding: UTF-8 -*-

import numpy as np
import pytest
import torch
import torch.nn.functional as F

from pgstyle.progan.base import GrowthState
from pgstyle.stylegan.architectures import StyleMappingNetwork, StyleAddNoise, StyleModulation, StyleGenerator
from pgstyle.utils.data_utils import to_image_batch
from pgstyle.utils.latent_utils import gen_rand_latent_vars

from conftest import LEN_LATENT

#++++++++++++++++++++++++++++++++++++++++++++++++++++++++++++++++++++++++++++++#

def test_mapping_network_output_size():
  mapping = StyleMappingNetwork( len_latent = 64, len_dlatent = 48, num_fcs = 3 )
  assert mapping( torch.randn( 5, 64 ) ).shape == ( 5, 48, )

def test_modulation_normalizes_with_identity_style():
  mod = StyleModulation( nf = 6, len_dlatent = 10 )
  with torch.no_grad():
    mod.scale_transform.linear.weight.zero_(); mod.scale_transform.linear.bias.fill_( 1. )
    mod.bias_transform.linear.weight.zero_(); mod.bias_transform.linear.bias.zero_()
  y = mod( torch.randn( 3, 6, 8, 8 ) * 5. + 3., torch.randn( 3, 10 ) )
  assert torch.allclose( y.mean( dim = ( 2, 3, ) ), torch.zeros( 3, 6 ), atol = 1e-5 )
  assert torch.allclose( y.var( dim = ( 2, 3, ), unbiased = False ), torch.ones( 3, 6 ), atol = 1e-4 )

def test_modulation_rejects_wrong_style_size():
  mod = StyleModulation( nf = 6, len_dlatent = 10 )
  with pytest.raises( ValueError ):
    mod( torch.randn( 3, 6, 4, 4 ), torch.randn( 3, 11 ) )

#++++++++++++++++++++++++++++++++++++++++++++++++++++++++++++++++++++++++++++++#

def test_end_to_end_latent_to_image():
  gen = StyleGenerator( GrowthState( max_level = 2 ), len_latent = 256, len_dlatent = 256,
                        truncation_cutoff_level = 1 )
  z = gen_rand_latent_vars( num_samples = 3, length = 256, device = 'cpu' )
  assert gen.z_to_w( z ).shape == ( 3, 256, )

  gen.eval()
  with torch.no_grad():
    images = to_image_batch( gen( z ) )
  assert images.shape == ( 3, 4, 4, 3, )
  assert images.min() >= -1. and images.max() <= 1.

def test_synthesis_blend_boundaries( gen, growth_state ):
  gen.eval()
  ws = torch.randn( 2, 4, LEN_LATENT )
  with torch.no_grad():
    x_lv1 = gen.synthesis( ws[ :, :2 ] )

    gen.grow()
    x_alpha0 = gen.synthesis( ws )
    growth_state.alpha = 1.
    x_alpha1 = gen.synthesis( ws )
    growth_state.alpha = .5
    x_alpha_half = gen.synthesis( ws )

  assert x_alpha0.shape == ( 2, 3, 8, 8, )
  assert torch.allclose( x_alpha0, F.interpolate( x_lv1, scale_factor = 2, mode = 'nearest' ), atol = 1e-5 )
  assert torch.allclose( x_alpha_half, ( x_alpha0 + x_alpha1 ) / 2., atol = 1e-5 )

def test_synthesis_ignores_previous_adapter_at_alpha_one( gen, growth_state ):
  gen.eval()
  gen.grow()
  growth_state.alpha = 1.
  with torch.no_grad():
    gen.synthesis.prev_torgb.conv2d.weight.fill_( float( 'nan' ) )
    x = gen( torch.randn( 2, LEN_LATENT ) )
  assert torch.all( torch.isfinite( x ) )

def test_synthesis_rejects_too_few_styles( gen ):
  gen.grow()
  with pytest.raises( ValueError ):
    gen.synthesis( torch.randn( 2, 2, LEN_LATENT ) )

def test_synthesis_variants_build_and_run():
  state = GrowthState( max_level = 2, fmap_base = 64, fmap_max = 16 )
  gen = StyleGenerator( state, len_latent = 16, len_dlatent = 16, mapping_num_fcs = 1,
                        use_fused_scale = False, use_noise = False, use_const_input = False,
                        normalize_z = False, truncation_cutoff_level = 1 )
  gen.grow()
  assert gen( torch.randn( 2, 16 ) ).shape == ( 2, 3, 8, 8, )

#++++++++++++++++++++++++++++++++++++++++++++++++++++++++++++++++++++++++++++++#

def test_w_avg_only_updates_in_training( gen ):
  z = torch.randn( 4, LEN_LATENT )
  gen.eval()
  with torch.no_grad():
    gen( z )
  assert torch.all( gen.w_avg == 0. )

  gen.train()
  with torch.no_grad():
    w = gen.z_to_w( z )
    gen( z )
  assert torch.allclose( gen.w_avg, w.mean( dim = 0 ) * ( 1. - gen.w_avg_beta ), atol = 1e-5 )
  assert 'w_avg' in dict( gen.named_buffers() )
  assert 'w_avg' not in dict( gen.named_parameters() )

def test_mix_styles_by_cutoff_level( gen ):
  gen.grow()
  ws = torch.zeros( 2, 4, LEN_LATENT )
  w_mixing = torch.ones( 2, LEN_LATENT )
  mixed = gen.mix_styles( ws, w_mixing, cutoff_levels = torch.tensor( [ 1, 2 ] ) )
  # cutoff level 1 replaces every stage; cutoff level 2 only the stages of level 2
  assert torch.all( mixed[ 0 ] == 1. )
  assert torch.all( mixed[ 1, :2 ] == 0. ) and torch.all( mixed[ 1, 2: ] == 1. )

def test_eval_style_mixing_requires_valid_level( gen ):
  gen.eval()
  z = torch.randn( 2, LEN_LATENT )
  with torch.no_grad():
    assert gen( z, x_mixing = torch.randn( 2, LEN_LATENT ), mixing_level = 1 ).shape == ( 2, 3, 4, 4, )
    with pytest.raises( ValueError ):
      gen( z, x_mixing = torch.randn( 2, LEN_LATENT ), mixing_level = 2 )

def test_truncation_pulls_styles_to_average( gen ):
  gen.grow()
  gen.w_avg.normal_()
  ws = torch.randn( 2, 4, LEN_LATENT )

  gen.eval()
  gen.truncation_psi = 0.
  gen.truncation_cutoff_level = 1
  truncated = gen.truncate( ws )
  assert torch.allclose( truncated[ :, :2 ], gen.w_avg.expand( 2, 2, -1 ) )
  assert torch.equal( truncated[ :, 2: ], ws[ :, 2: ] )

def test_truncation_settings_locked_in_training( gen ):
  gen.train()
  with pytest.raises( RuntimeError ):
    gen.truncation_psi = .5
  gen.eval()
  with pytest.raises( ValueError ):
    gen.truncation_cutoff_level = 7

#++++++++++++++++++++++++++++++++++++++++++++++++++++++++++++++++++++++++++++++#

def test_add_noise_starts_disabled():
  add_noise = StyleAddNoise( nf = 3 )
  x = torch.randn( 2, 3, 4, 4 )
  assert torch.equal( add_noise( x ), x )

def test_add_noise_is_one_map_scaled_per_channel():
  add_noise = StyleAddNoise( nf = 3 )
  with torch.no_grad():
    add_noise.noise_weight.copy_( torch.tensor( [ 1., 2., -3. ] ).view( 1, 3, 1, 1 ) )
  x = torch.randn( 2, 3, 4, 4 )

  add_noise.train()
  with torch.no_grad():
    y_a = add_noise( x ); y_b = add_noise( x )
  # noise is sampled afresh on every call
  assert not torch.allclose( y_a, y_b )

  noise_map = ( y_a - x ) / add_noise.noise_weight
  assert torch.allclose( noise_map[ :, 0 ], noise_map[ :, 1 ], atol = 1e-5 )
  assert torch.allclose( noise_map[ :, 0 ], noise_map[ :, 2 ], atol = 1e-5 )
  # and differs between samples
  assert not torch.allclose( noise_map[ 0 ], noise_map[ 1 ] )

def test_add_noise_applies_given_noise_in_eval():
  add_noise = StyleAddNoise( nf = 3 )
  with torch.no_grad():
    add_noise.noise_weight.fill_( .5 )
  x = torch.randn( 2, 3, 4, 4 )
  noise = torch.randn( 2, 1, 4, 4 )

  add_noise.eval()
  with torch.no_grad():
    y = add_noise( x, noise = noise )
  assert torch.allclose( y, x + .5 * noise )

def test_generator_with_small_max_level_and_default_truncation():
  gen = StyleGenerator( GrowthState( max_level = 2 ), len_latent = 16, len_dlatent = 16, mapping_num_fcs = 1 )
  assert gen.truncation_cutoff_level == 2
  gen.grow()
  gen.eval()
  gen.use_truncation = True
  with torch.no_grad():
    assert gen( torch.randn( 2, 16 ) ).shape == ( 2, 3, 8, 8, )
