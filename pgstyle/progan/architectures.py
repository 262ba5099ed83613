# -*- coding: UTF-8 -*-

"""ProGAN-style discriminator, grown in lockstep with the style-based generator.
"""

#++++++++++++++++++++++++++++++++++++++++++++++++++++++++++++++++++++++++++++++#

from .base import ProGAN
from .._int import FMAP_SAMPLES
from ..utils.custom_layers import Lambda, Blur2d, lerp, concat_mbstd_layer, \
                                  add_channel_noise, Conv2dEx, LinearEx

import torch
from torch import nn
import torch.nn.functional as F

# ++++++++++++++++++++++++++++++++++++++++++++++++++++++++++++++++++++++++++++ #

FMAP_D_END_FCTR = 1

# ++++++++++++++++++++++++++++++++++++++++++++++++++++++++++++++++++++++++++++ #
# Discriminator Blocks:
# ---------------------

class ProDiscriminatorBlock( nn.Module ):
  """Halves the spatial resolution: `ni` channels at 2r x 2r -> `nf` channels at r x r."""
  def __init__( self, ni, nf, nl, use_fused_scale = True, pooler = None, blur_type = None ):
    super( ProDiscriminatorBlock, self ).__init__()

    self.conv0 = Conv2dEx( ni = ni, nf = ni, ks = 3, stride = 1, padding = 1, nl = nl )

    self.blur = Blur2d( num_channels = ni, blur_type = blur_type ) if blur_type is not None else None

    if use_fused_scale:
      self.conv1 = Conv2dEx( ni = ni, nf = nf, ks = 3, stride = 2, padding = 1, nl = nl )
      self.pooler = None
    else:
      self.conv1 = Conv2dEx( ni = ni, nf = nf, ks = 3, stride = 1, padding = 1, nl = nl )
      self.pooler = pooler if pooler is not None else nn.AvgPool2d( kernel_size = 2, stride = 2 )

  def forward( self, x, noise_scale = 0. ):
    x = self.conv0( add_channel_noise( x, noise_scale ) )
    if self.blur is not None:
      x = self.blur( x )
    x = self.conv1( add_channel_noise( x, noise_scale ) )
    if self.pooler is not None:
      x = self.pooler( x )
    return x


class ProDiscriminatorFinalBlock( nn.Module ):
  """Collapses the 4x4 feature maps into one realism score per sample."""
  def __init__( self, nf, nl, mbstd_group_size = 4 ):
    super( ProDiscriminatorFinalBlock, self ).__init__()

    self.mbstd_group_size = mbstd_group_size
    _use_mbstd = mbstd_group_size != -1

    _fmap_end = nf * FMAP_D_END_FCTR
    self.conv0 = Conv2dEx( ni = nf + ( 1 if _use_mbstd else 0 ), nf = nf, ks = 3,
                           stride = 1, padding = 1, nl = nl )
    self.conv1 = Conv2dEx( ni = nf, nf = _fmap_end, ks = 4, stride = 1, padding = 0, nl = nl )
    self.flatten = Lambda( lambda x: x.view( -1, _fmap_end ) )
    self.dense = LinearEx( nin_feat = _fmap_end, nout_feat = 1, gain = 1. )

  def forward( self, x, noise_scale = 0. ):
    if self.mbstd_group_size != -1:
      x = concat_mbstd_layer( x, group_size = self.mbstd_group_size )
    x = self.conv0( add_channel_noise( x, noise_scale ) )
    x = self.conv1( add_channel_noise( x, noise_scale ) )
    return self.dense( self.flatten( x ) )

# ++++++++++++++++++++++++++++++++++++++++++++++++++++++++++++++++++++++++++++ #
# Discriminator:
# --------------

class ProDiscriminator( ProGAN ):
  """Progressively Growing GAN (Karras et al. 2018) Discriminator/Critic.

  Mirror image of the synthesis network: a from-image adapter at the current
  top resolution, one downsampling block per level >= 2 (kept in
  `disc_blocks`, ordered by level and append-only) and a fixed final block.

  With `use_adaptive_noise`, every convolution input is multiplied by
  per-channel noise whose strength grows with `output_mean`, the running
  average of the scores this network has given to generated samples.
  """
  def __init__( self,
                growth_state,
                use_fused_scale = True,
                pooler = nn.AvgPool2d( kernel_size = 2, stride = 2 ),
                blur_type = None,
                nl = nn.LeakyReLU( negative_slope = .2 ),
                mbstd_group_size = 4,
                use_adaptive_noise = False,
                adaptive_noise_strength = .2,
                adaptive_noise_target = .5,
                output_mean_beta = .9 ):

    super( ProDiscriminator, self ).__init__( growth_state )

    self.use_fused_scale = use_fused_scale
    self.pooler = pooler
    self.pooler_skip_connection = \
      lambda xb: F.avg_pool2d( xb, kernel_size = 2, stride = 2 )  # keep fading-in layers simple

    self.disc_blur_type = blur_type

    self.nl = nl

    self.mbstd_group_size = mbstd_group_size

    self.use_adaptive_noise = use_adaptive_noise
    self.adaptive_noise_strength = adaptive_noise_strength
    self.adaptive_noise_target = adaptive_noise_target
    if not 0. <= output_mean_beta < 1.:
      raise ValueError( 'output_mean_beta must be in the range [0,1).' )
    self.output_mean_beta = output_mean_beta
    self.register_buffer( 'output_mean', torch.zeros( () ) )

    self.disc_blocks = nn.ModuleList( )

    self.prev_fromrgb = None
    self._update_fromrgb( nf = self.fmap )

    self.final_block = ProDiscriminatorFinalBlock( nf = self.fmap, nl = nl,
                                                   mbstd_group_size = mbstd_group_size )

  def _append_block( self, level ):
    # the adapter of the previous top resolution becomes the fading-in path
    self.prev_fromrgb = self.fromrgb
    self._update_fromrgb( nf = self.get_fmap( level ) )

    self.disc_blocks.append(
      ProDiscriminatorBlock( ni = self.get_fmap( level ), nf = self.get_fmap( level - 1 ),
                             nl = self.nl, use_fused_scale = self.use_fused_scale,
                             pooler = self.pooler, blur_type = self.disc_blur_type )
    )

  def _update_fromrgb( self, nf ):
    self.fromrgb = Conv2dEx( ni = FMAP_SAMPLES, nf = nf, ks = 1, stride = 1,
                             padding = 0, nl = self.nl )

  @property
  def noise_scale( self ):
    """Strength of the adaptive per-channel noise; a plain float, never differentiated."""
    if not self.use_adaptive_noise:
      return 0.
    return self.adaptive_noise_strength * \
           max( self.output_mean.item() - self.adaptive_noise_target, 0. )**2

  @torch.no_grad()
  def update_output_mean( self, scores ):
    """`output_mean <- beta * output_mean + (1 - beta) * mean(scores)`; only call with scores of generated samples."""
    self.output_mean.mul_( self.output_mean_beta ).add_(
      scores.detach().mean().to( self.output_mean.dtype ) * ( 1. - self.output_mean_beta )
    )

  def forward( self, x ):
    self._check_synchronized()
    if x.dim() != 4 or tuple( x.shape[1:] ) != ( FMAP_SAMPLES, self.curr_res, self.curr_res, ):
      message = f'{self.__class__.__name__} at level {self.built_level} expects inputs of shape' + \
                f' [N, {FMAP_SAMPLES}, {self.curr_res}, {self.curr_res}], got {list( x.shape )}.'
      raise ValueError( message )

    noise_scale = self.noise_scale if self.training else 0.

    if self.built_level == 1:
      x = self.fromrgb( x )
    else:
      x_new = self.disc_blocks[ -1 ]( self.fromrgb( x ), noise_scale )
      if self.alpha < 1.:
        x = lerp( self.prev_fromrgb( self.pooler_skip_connection( x ) ), x_new, self.alpha )
      else:
        x = x_new
      for disc_block in reversed( self.disc_blocks[ :-1 ] ):
        x = disc_block( x, noise_scale )

    return self.final_block( x, noise_scale ).view( -1 )
