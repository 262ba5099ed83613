# -*- coding: UTF-8 -*-

"""StyleGAN architectures.
"""

# ++++++++++++++++++++++++++++++++++++++++++++++++++++++++++++++++++++++++++++ #

from ..progan.base import ProGAN
from .._int import FMAP_SAMPLES, RES_INIT
from ..utils.latent_utils import gen_rand_latent_vars
from ..utils.custom_layers import Lambda, Blur2d, PixelNorm, instance_norm_2d, \
                                  lerp, Conv2dEx, ConvTranspose2dEx, LinearEx

import numpy as np
import torch
from torch import nn
import torch.nn.functional as F

# ++++++++++++++++++++++++++++++++++++++++++++++++++++++++++++++++++++++++++++ #

class StyleMappingNetwork( nn.Module ):
  """Mapping Network for StyleGAN architecture."""
  def __init__( self,
                len_latent = 256,
                len_dlatent = 256,
                num_fcs = 6,
                nl = nn.LeakyReLU( negative_slope = .2 ),
                normalize_z = True ):
    super( StyleMappingNetwork, self ).__init__()

    self.len_latent = len_latent

    if normalize_z:
      self.preprocess_z = nn.Sequential(
        Lambda( lambda x: x.view( -1, len_latent ) ),
        PixelNorm( )
      )
    else:
      self.preprocess_z = Lambda( lambda x: x.view( -1, len_latent ) )

    self.dims = np.linspace( len_latent, len_dlatent, num_fcs + 1 ).astype( np.int64 )
    self.fc_mapping_model = nn.Sequential( )
    for seq_n in range( num_fcs ):
      self.fc_mapping_model.add_module(
        'fc_' + str( seq_n ),
        LinearEx( nin_feat = self.dims[seq_n], nout_feat = self.dims[seq_n+1], nl = nl )
      )

  def forward( self, x ):
    return self.fc_mapping_model( self.preprocess_z( x ) )


class StyleAddNoise( nn.Module ):
  """Simple `nn.Module` that adds weighted uncorrelated Gaussian noise to a layer of feature maps."""
  def __init__( self, nf ):
    super( StyleAddNoise, self ).__init__()

    self.noise_weight = nn.Parameter( torch.FloatTensor( 1, nf, 1, 1 ).fill_( 0 ) )

  def forward( self, x, noise = None ):
    if self.training or noise is None:
      # for training mode or when user does not supply noise in evaluation mode:
      return x + self.noise_weight * \
        torch.randn( x.shape[0], 1, x.shape[2], x.shape[3], dtype = x.dtype, device = x.device )
    else:
      # for if when user supplies noise in evaluation mode:
      return x + self.noise_weight * noise


class StyleModulation( nn.Module ):
  """Adaptive instance modulation (AdaIN).

  Instance-normalizes `x` and then applies a per-channel scale and bias, each
  an independent equalized-LR dense projection (gain 1) of the style vector.
  """
  def __init__( self, nf, len_dlatent ):
    super( StyleModulation, self ).__init__()

    self.nf = nf
    self.len_dlatent = len_dlatent

    self.scale_transform = LinearEx( nin_feat = len_dlatent, nout_feat = nf, gain = 1. )
    self.bias_transform = LinearEx( nin_feat = len_dlatent, nout_feat = nf, gain = 1. )

  def forward( self, x, w ):
    if w.dim() != 2 or w.shape[1] != self.len_dlatent:
      message = f'Style vector must be of shape [N, {self.len_dlatent}], got {list( w.shape )}.'
      raise ValueError( message )

    x = instance_norm_2d( x )
    scale = self.scale_transform( w ).view( -1, self.nf, 1, 1 )
    bias = self.bias_transform( w ).view( -1, self.nf, 1, 1 )
    return x * scale + bias

# ............................................................................ #
# Synthesis Blocks:
# -----------------

class StyleSynthesisStage( nn.Module ):
  """[conv ->] [blur ->] [noise ->] nonlinearity -> style modulation."""
  def __init__( self, nf, len_dlatent, nl, conv = None, blur_type = None, use_noise = True ):
    super( StyleSynthesisStage, self ).__init__()

    self.conv = conv
    self.blur = Blur2d( num_channels = nf, blur_type = blur_type ) if blur_type is not None else None
    self.noise = StyleAddNoise( nf = nf ) if use_noise else None
    self.nl = nl
    self.modulation = StyleModulation( nf = nf, len_dlatent = len_dlatent )

  def forward( self, x, w, noise = None ):
    if self.conv is not None:
      x = self.conv( x )
    if self.blur is not None:
      x = self.blur( x )
    if self.noise is not None:
      x = self.noise( x, noise = noise )
    return self.modulation( self.nl( x ), w )


class StyleSynthesisBaseBlock( nn.Module ):
  """Level-1 (4x4) block: learned constant (or projected style) followed by two modulation stages."""
  def __init__( self, nf, len_dlatent, nl, use_noise = True, use_const_input = True ):
    super( StyleSynthesisBaseBlock, self ).__init__()

    self.nf = nf
    self.use_const_input = use_const_input
    if use_const_input:
      # initializing the input to 1 has about the same effect as applyng PixelNorm to the input
      self.const_input = nn.Parameter(
        torch.FloatTensor( 1, nf, RES_INIT, RES_INIT ).fill_( 1 )
      )
    else:
      self.w_to_input = LinearEx( nin_feat = len_dlatent, nout_feat = nf * RES_INIT**2,
                                  gain = np.sqrt( 2 ) / RES_INIT )

    self.stage0 = StyleSynthesisStage( nf, len_dlatent, nl, use_noise = use_noise )
    self.stage1 = StyleSynthesisStage(
      nf, len_dlatent, nl, use_noise = use_noise,
      conv = Conv2dEx( ni = nf, nf = nf, ks = 3, stride = 1, padding = 1 )
    )

  def forward( self, w0, w1, noise = ( None, None, ) ):
    if self.use_const_input:
      x = self.const_input.expand( w0.shape[0], -1, -1, -1 )
    else:
      x = self.w_to_input( w0 ).view( -1, self.nf, RES_INIT, RES_INIT )
    x = self.stage0( x, w0, noise = noise[0] )
    return self.stage1( x, w1, noise = noise[1] )


class StyleSynthesisBlock( nn.Module ):
  """Doubles the spatial resolution: `ni` channels at r x r -> `nf` channels at 2r x 2r."""
  def __init__( self, ni, nf, len_dlatent, nl, use_fused_scale = True,
                upsampler = None, blur_type = None, use_noise = True ):
    super( StyleSynthesisBlock, self ).__init__()

    if use_fused_scale:
      upconv = ConvTranspose2dEx( ni = ni, nf = nf, ks = 3, stride = 2, padding = 1, output_padding = 1 )
    else:
      upconv = nn.Sequential(
        upsampler if upsampler is not None else nn.Upsample( scale_factor = 2, mode = 'nearest' ),
        Conv2dEx( ni = ni, nf = nf, ks = 3, stride = 1, padding = 1 )
      )

    self.stage0 = StyleSynthesisStage( nf, len_dlatent, nl, conv = upconv,
                                       blur_type = blur_type, use_noise = use_noise )
    self.stage1 = StyleSynthesisStage(
      nf, len_dlatent, nl, use_noise = use_noise,
      conv = Conv2dEx( ni = nf, nf = nf, ks = 3, stride = 1, padding = 1 )
    )

  def forward( self, x, w0, w1, noise = ( None, None, ) ):
    x = self.stage0( x, w0, noise = noise[0] )
    return self.stage1( x, w1, noise = noise[1] )

# ............................................................................ #
# Synthesis Network:
# ------------------

class StyleSynthesisNetwork( ProGAN ):
  """Growable synthesis network: style vectors -> image.

  Each level owns two modulation stages, so a network built up to level L
  consumes `2 * L` style vectors. Blocks for levels >= 2 live in `gen_blocks`,
  ordered by level and append-only; growing only appends a block and swaps in
  a new to-image adapter, keeping the old one as `prev_torgb`.
  """
  def __init__( self,
                growth_state,
                len_dlatent = 256,
                use_fused_scale = True,
                upsampler = nn.Upsample( scale_factor = 2, mode = 'nearest' ),
                blur_type = None,
                nl = nn.LeakyReLU( negative_slope = .2 ),
                use_noise = True,
                use_const_input = True ):

    super( StyleSynthesisNetwork, self ).__init__( growth_state )

    self.len_dlatent = len_dlatent
    self.use_fused_scale = use_fused_scale
    self.upsampler = upsampler
    self.upsampler_skip_connection = \
      lambda xb: F.interpolate( xb, scale_factor = 2, mode = 'nearest' )  # keep fading-in layers simple
    self.gen_blur_type = blur_type
    self.nl = nl
    self.use_noise = use_noise

    self.base_block = StyleSynthesisBaseBlock( nf = self.fmap, len_dlatent = len_dlatent, nl = nl,
                                               use_noise = use_noise, use_const_input = use_const_input )
    self.gen_blocks = nn.ModuleList( )

    self.prev_torgb = None
    self._update_torgb( ni = self.fmap )

  @property
  def num_stages( self ):
    return 2 * self.built_level

  def _append_block( self, level ):
    self.gen_blocks.append(
      StyleSynthesisBlock( ni = self.get_fmap( level - 1 ), nf = self.get_fmap( level ),
                           len_dlatent = self.len_dlatent, nl = self.nl,
                           use_fused_scale = self.use_fused_scale, upsampler = self.upsampler,
                           blur_type = self.gen_blur_type, use_noise = self.use_noise )
    )

    # the adapter of the previous top resolution becomes the fading-in path
    self.prev_torgb = self.torgb
    self._update_torgb( ni = self.get_fmap( level ) )

  def _update_torgb( self, ni ):
    self.torgb = Conv2dEx( ni = ni, nf = FMAP_SAMPLES, ks = 1, stride = 1,
                           padding = 0, gain = 1. )

  def forward( self, ws, noise = None ):
    """`ws` is either [N, len_dlatent] (one style for every stage) or [N, num_stages, len_dlatent].

    `noise` optionally holds one [N, 1, H, W] tensor per stage, used in evaluation mode only.
    """
    self._check_synchronized()

    if ws.dim() == 2:
      ws = ws.unsqueeze( 1 ).expand( -1, self.num_stages, -1 )
    if ws.dim() != 3 or ws.shape[1] < self.num_stages or ws.shape[2] != self.len_dlatent:
      message = f'Expected style vectors of shape [N, {self.num_stages}, {self.len_dlatent}], got {list( ws.shape )}.'
      raise ValueError( message )
    if noise is None:
      noise = [ None ] * self.num_stages

    x = self.base_block( ws[ :, 0 ], ws[ :, 1 ], noise = noise[ 0:2 ] )
    if self.built_level == 1:
      return self.torgb( x )

    for n, gen_block in enumerate( self.gen_blocks[ :-1 ] ):
      stage = 2*( n + 1 )
      x = gen_block( x, ws[ :, stage ], ws[ :, stage + 1 ], noise = noise[ stage:stage + 2 ] )

    stage = 2*( self.built_level - 1 )
    x_new = self.torgb(
      self.gen_blocks[ -1 ]( x, ws[ :, stage ], ws[ :, stage + 1 ], noise = noise[ stage:stage + 2 ] )
    )
    if self.alpha < 1.:
      return lerp( self.upsampler_skip_connection( self.prev_torgb( x ) ), x_new, self.alpha )
    return x_new

# ............................................................................ #
# Generator:
# ----------

class StyleGenerator( nn.Module ):
  """StyleGAN (Karras et al. 2019) Generator: mapping network + growable synthesis network.

  Also owns the running average of the style vectors (`w_avg`, a buffer that is
  only updated in training mode), style-mixing regularization during training,
  and optional truncation of the style vectors in evaluation mode.
  """
  def __init__( self,
                growth_state,
                latent_distribution = 'normal',
                len_latent = 256,
                len_dlatent = 256,
                mapping_num_fcs = 6,
                use_fused_scale = True,
                upsampler = nn.Upsample( scale_factor = 2, mode = 'nearest' ),
                blur_type = None,
                nl = nn.LeakyReLU( negative_slope = .2 ),
                normalize_z = True,
                use_noise = True,
                use_const_input = True,
                style_mixing_prob = .9,
                w_avg_beta = .99,
                use_truncation = False,
                truncation_psi = .7,
                truncation_cutoff_level = 4 ):

    super( StyleGenerator, self ).__init__()

    self.latent_distribution = latent_distribution
    self.len_latent = len_latent
    self.len_dlatent = len_dlatent

    self.z_to_w = StyleMappingNetwork(
      len_latent = len_latent,
      len_dlatent = len_dlatent,
      num_fcs = mapping_num_fcs,
      nl = nl,
      normalize_z = normalize_z
    )

    self.synthesis = StyleSynthesisNetwork(
      growth_state,
      len_dlatent = len_dlatent,
      use_fused_scale = use_fused_scale,
      upsampler = upsampler,
      blur_type = blur_type,
      nl = nl,
      use_noise = use_noise,
      use_const_input = use_const_input
    )

    if not 0. <= style_mixing_prob <= 1.:
      raise ValueError( 'style_mixing_prob must be in the range [0,1].' )
    self.style_mixing_prob = style_mixing_prob

    if not 0. <= w_avg_beta <= 1.:
      raise ValueError( 'w_avg_beta must be in the range [0,1].' )
    self.w_avg_beta = w_avg_beta
    self.register_buffer( 'w_avg', torch.zeros( len_dlatent ) )

    self.use_truncation = use_truncation
    self._truncation_psi = truncation_psi  # allow psi to be any number you want, perhaps worthy of experimentation
    self._truncation_cutoff_level = None
    if truncation_cutoff_level is not None:
      # the default cutoff level may lie above a small max_level
      truncation_cutoff_level = min( truncation_cutoff_level, growth_state.max_level )
    self._set_truncation_cutoff_level( truncation_cutoff_level )

  # .......................................................................... #

  def grow( self ):
    self.synthesis.grow()

  @property
  def growth_state( self ):
    return self.synthesis.growth_state

  @property
  def level( self ):
    return self.synthesis.level

  @property
  def built_level( self ):
    return self.synthesis.built_level

  @property
  def curr_res( self ):
    return self.synthesis.curr_res

  @property
  def fade_in_phase( self ):
    return self.synthesis.fade_in_phase

  @property
  def alpha( self ):
    return self.synthesis.alpha

  @alpha.setter
  def alpha( self, new_alpha ):
    self.synthesis.alpha = new_alpha

  @property
  def truncation_psi( self ):
    return self._truncation_psi

  @truncation_psi.setter
  def truncation_psi( self, new_truncation_psi ):
    """Change this to your choosing (but only in evaluation mode), optionally allowing for |psi| to be > 1."""
    if self.training:
      raise RuntimeError( 'Can only alter psi value for truncation trick on w during evaluation mode.' )
    self._truncation_psi = new_truncation_psi

  @property
  def truncation_cutoff_level( self ):
    return self._truncation_cutoff_level

  @truncation_cutoff_level.setter
  def truncation_cutoff_level( self, new_truncation_cutoff_level ):
    """Change this to your choosing (but only in evaluation mode)."""
    if self.training:
      raise RuntimeError( 'Can only alter cutoff level for truncation trick on w during evaluation mode.' )
    self._set_truncation_cutoff_level( new_truncation_cutoff_level )

  def _set_truncation_cutoff_level( self, new_truncation_cutoff_level ):
    _max_level = self.growth_state.max_level
    if ( isinstance( new_truncation_cutoff_level, int ) and \
         0 < new_truncation_cutoff_level <= _max_level ) or new_truncation_cutoff_level is None:
      self._truncation_cutoff_level = new_truncation_cutoff_level
    else:
      message = f'Cutoff level for truncation trick on w must be of type `int` in range (0,{_max_level}] or `None`.'
      raise ValueError( message )

  # .......................................................................... #

  def stage_levels( self, device = None ):
    """Resolution level that each modulation stage belongs to (two stages per level)."""
    return torch.arange( self.synthesis.num_stages, device = device ) // 2 + 1

  @torch.no_grad()
  def update_w_avg( self, w ):
    self.w_avg.copy_( lerp( w.detach().mean( dim = 0 ), self.w_avg, self.w_avg_beta ) )

  def mix_styles( self, ws, w_mixing, cutoff_levels ):
    """Stages whose level is >= the per-sample cutoff level take their style from `w_mixing`."""
    mask = self.stage_levels( device = ws.device ).view( 1, -1 ) >= cutoff_levels.view( -1, 1 )
    return torch.where( mask.unsqueeze( 2 ), w_mixing.unsqueeze( 1 ).expand_as( ws ), ws )

  def truncate( self, ws ):
    """Pulls the styles of stages up to `truncation_cutoff_level` towards `w_avg` by a factor `truncation_psi`."""
    if self.truncation_cutoff_level is None:
      return ws
    w_avg = self.w_avg.view( 1, 1, -1 )
    ws_trunc = w_avg + self.truncation_psi * ( ws - w_avg )
    mask = ( self.stage_levels( device = ws.device ) <= self.truncation_cutoff_level ).view( 1, -1, 1 )
    return torch.where( mask, ws_trunc, ws )

  def forward( self, x, x_mixing = None, mixing_level:int = None, noise = None ):
    w = self.z_to_w( x )
    bs = w.shape[0]
    ws = w.unsqueeze( 1 ).repeat( 1, self.synthesis.num_stages, 1 )

    # Training Mode Only:
    if self.training:
      self.update_w_avg( w )
      if self.style_mixing_prob and np.random.rand() < self.style_mixing_prob:
        z_mixing = gen_rand_latent_vars( num_samples = bs, length = self.len_latent,
                                         distribution = self.latent_distribution, device = w.device )
        cutoff_levels = torch.randint( 1, self.built_level + 1, ( bs, ), device = w.device )
        ws = self.mix_styles( ws, self.z_to_w( z_mixing ), cutoff_levels )

    # Evaluation Mode Only:
    else:
      if x_mixing is not None:
        if mixing_level is None or not 0 < mixing_level <= self.built_level:
          message = f'Style mixing in evaluation mode requires `mixing_level` in range (0,{self.built_level}].'
          raise ValueError( message )
        cutoff_levels = torch.full( ( bs, ), mixing_level, dtype = torch.int64, device = w.device )
        ws = self.mix_styles( ws, self.z_to_w( x_mixing ), cutoff_levels )
      if self.use_truncation:
        ws = self.truncate( ws )

    return self.synthesis( ws, noise = noise )
