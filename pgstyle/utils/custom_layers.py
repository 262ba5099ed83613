# -*- coding: UTF-8 -*-

"""Custom layers.
"""

# ++++++++++++++++++++++++++++++++++++++++++++++++++++++++++++++++++++++++++++ #

from .initializer import Initializer

import numpy as np
import torch
from torch import nn
import torch.nn.functional as F

# ++++++++++++++++++++++++++++++++++++++++++++++++++++++++++++++++++++++++++++ #
# Lambda:
# -------

class Lambda( nn.Module ):
  """Converts any function into a PyTorch Module."""
  def __init__( self, func, **kwargs ):
    super( Lambda, self ).__init__()
    self.func = func
    if kwargs:
      self.kwargs = kwargs
    else:
      self.kwargs = {}

  def forward( self, x ):
    return self.func( x, **self.kwargs )

# ++++++++++++++++++++++++++++++++++++++++++++++++++++++++++++++++++++++++++++ #
# Interpolation:
# --------------

def lerp( a, b, rate ):
  """`a + rate * ( b - a )`, with `rate` clamped to [0,1]."""
  rate = min( max( float( rate ), 0. ), 1. )
  return a + rate * ( b - a )

# ++++++++++++++++++++++++++++++++++++++++++++++++++++++++++++++++++++++++++++ #
# Blur (Low-pass Filtering):
# --------------------------

class Blur2d( nn.Module ):
  """Depthwise 3x3 low-pass filter; preserves spatial size."""
  def __init__( self, num_channels, blur_type = 'binomial' ):
    super( Blur2d, self ).__init__()

    blur_type = blur_type.casefold()
    if blur_type == 'binomial':
      f = torch.FloatTensor( [ 1., 2., 1. ] )
    elif blur_type == 'box':
      f = torch.FloatTensor( [ 1., 1., 1. ] )
    else:
      raise ValueError( f'`blur_type` == "{blur_type}" not supported. Options are "binomial" and "box".' )
    f = f.view( 1, -1 ) * f.view( -1, 1 )
    f /= f.sum()

    self.num_channels = num_channels
    self.register_buffer( 'blur_filter', f.expand( num_channels, 1, 3, 3 ).contiguous() )

  def forward( self, x ):
    return F.conv2d( x, self.blur_filter, stride = 1, padding = 1, groups = self.num_channels )

# ++++++++++++++++++++++++++++++++++++++++++++++++++++++++++++++++++++++++++++ #
# Normalization:
# --------------

class PixelNorm( nn.Module ):
  """Normalizes each feature vector to unit average square along dim 1."""
  def __init__( self, eps = 1.e-8 ):
    super( PixelNorm, self ).__init__()
    self.eps = eps

  def forward( self, x ):
    return x * ( ( ( x**2 ).mean( dim = 1, keepdim = True ) + self.eps ).rsqrt() )

def instance_norm_2d( x, eps = 1.e-8 ):
  """Zero mean, unit (population) variance per sample and channel over H,W."""
  mean = x.mean( dim = ( 2, 3, ), keepdim = True )
  var = x.var( dim = ( 2, 3, ), unbiased = False, keepdim = True )
  return ( x - mean ) * ( var + eps ).rsqrt()

# ++++++++++++++++++++++++++++++++++++++++++++++++++++++++++++++++++++++++++++ #
# Minibatch Standard Deviation:
# -----------------------------

def concat_mbstd_layer( x, group_size = 4, eps = 1.e-8 ):
  """Minibatch Standard Deviation layer.

  Appends one feature map holding, for every group of consecutive samples, the
  average over features and pixels of the within-group standard deviation.
  """
  _sz = x.size()

  if _sz[0] % group_size != 0:
    message = f'Minibatch size {_sz[0]} is not divisible by minibatch-stddev group size {group_size}.'
    raise ValueError( message )
  G = _sz[0] // group_size

  mbstd_map = x.reshape( G, group_size, _sz[1], _sz[2], _sz[3] )
  # population variance of the data shifted by the group's first sample;
  # a group of identical samples yields exactly 0
  mbstd_map = mbstd_map - mbstd_map[ :, :1 ]
  mbstd_map = ( mbstd_map**2 ).mean( dim = 1 ) - mbstd_map.mean( dim = 1 )**2
  mbstd_map = mbstd_map.clamp( min = 0. )
  eps = torch.tensor( eps, dtype = x.dtype, device = x.device )
  mbstd_map = torch.sqrt( mbstd_map + eps ) - torch.sqrt( eps )
  mbstd_map = mbstd_map.view( G, -1 )
  mbstd_map = torch.mean( mbstd_map, dim = 1 ).view( G, 1, 1, 1, 1 )
  mbstd_map = mbstd_map.expand( G, group_size, 1, _sz[2], _sz[3] )
  mbstd_map = mbstd_map.contiguous().view( ( -1, 1, _sz[2], _sz[3] ) )

  return torch.cat( ( x, mbstd_map, ), dim = 1 )

# ++++++++++++++++++++++++++++++++++++++++++++++++++++++++++++++++++++++++++++ #
# Adaptive Discriminator Noise:
# -----------------------------

def add_channel_noise( x, noise_scale ):
  """Multiplies every channel by `1 + eps * noise_scale * sqrt(C)`, eps ~ N(0,1) per channel."""
  if noise_scale <= 0.:
    return x
  nc = x.shape[1]
  eps = torch.randn( 1, nc, 1, 1, dtype = x.dtype, device = x.device )
  return x * ( eps * ( noise_scale * np.sqrt( nc ) ) + 1. )

# ++++++++++++++++++++++++++++++++++++++++++++++++++++++++++++++++++++++++++++ #
# Bread-and-butter Linear Operations, but with equalized LR:
# ----------------------------------------------------------

class Conv2dEx( nn.Module ):
  def __init__( self, ni, nf, ks, stride = 1, padding = 0, gain = np.sqrt( 2 ),
                nl = None, include_bias = True ):
    super( Conv2dEx, self ).__init__()

    self.ni = ni; self.nf = nf

    self.conv2d = nn.Conv2d(
      ni, nf, kernel_size = ks, stride = stride,
      padding = padding, bias = include_bias
    )

    self.initializer = Initializer( gain = gain )
    self.initializer.init_layer( self.conv2d.weight.data,
                                 self.conv2d.bias.data if include_bias else None )
    self.wscale = float( self.initializer.get_wscale( self.conv2d.weight ) )

    self.nl = nl if nl is not None else nn.Identity()

  def forward( self, x ):
    return self.nl( self.conv2d( x.mul( self.wscale ) ) )

class ConvTranspose2dEx( nn.Module ):
  """Fused 2x upsample + conv, realized as a stride-2 transposed convolution."""
  def __init__( self, ni, nf, ks = 3, stride = 2, padding = 1, output_padding = 1,
                gain = np.sqrt( 2 ), nl = None, include_bias = True ):
    super( ConvTranspose2dEx, self ).__init__()

    self.ni = ni; self.nf = nf

    self.conv_transpose2d = nn.ConvTranspose2d(
      ni, nf, kernel_size = ks, stride = stride, padding = padding,
      output_padding = output_padding, bias = include_bias
    )

    self.initializer = Initializer( gain = gain )
    self.initializer.init_layer( self.conv_transpose2d.weight.data,
                                 self.conv_transpose2d.bias.data if include_bias else None )
    self.wscale = float( self.initializer.get_wscale( self.conv_transpose2d.weight, transposed = True ) )

    self.nl = nl if nl is not None else nn.Identity()

  def forward( self, x ):
    return self.nl( self.conv_transpose2d( x.mul( self.wscale ) ) )

# ............................................................................ #

class LinearEx( nn.Module ):
  def __init__( self, nin_feat, nout_feat, gain = np.sqrt( 2 ), nl = None, include_bias = True ):
    super( LinearEx, self ).__init__()

    self.nin_feat = int( nin_feat ); self.nout_feat = int( nout_feat )

    self.linear = nn.Linear( self.nin_feat, self.nout_feat, bias = include_bias )

    self.initializer = Initializer( gain = gain )
    self.initializer.init_layer( self.linear.weight.data,
                                 self.linear.bias.data if include_bias else None )
    self.wscale = float( self.initializer.get_wscale( self.linear.weight ) )

    self.nl = nl if nl is not None else nn.Identity()

  def forward( self, x ):
    return self.nl( self.linear( x.mul( self.wscale ) ) )
