# -*- coding: UTF-8 -*-

"""Learner for progressively growing StyleGANs.

  Typical usage example:

  from pgstyle.config import get_config
  from pgstyle.utils.data_utils import ImageLoader
  from pgstyle.stylegan.learner import StyleGANLearner

  config = get_config( [ '--image_dir=path/to/images', '--max_level=6' ] )
  loader = ImageLoader( config.image_dir, extensions = config.image_extensions,
                        num_workers = config.num_workers )

  learner = StyleGANLearner( config )
  learner.train( loader, num_steps = 100000 )   # or `num_steps = None` to train until interrupted

The generator and the discriminator share one `GrowthState`, so growing and
fading always happen to both networks at once. Only this learner ever writes
to that state (through `grow()` and `set_alpha()`).
"""

# ++++++++++++++++++++++++++++++++++++++++++++++++++++++++++++++++++++++++++++ #

from .architectures import StyleGenerator
from ..progan.base import GrowthState
from ..progan.architectures import ProDiscriminator
from .._int import LearnerConfigCopy
from ..utils.latent_utils import gen_rand_latent_vars
from ..utils.backprop_utils import get_loss, configure_adam_for_gan, carry_over_optimizer_state
from ..utils.custom_layers import lerp
from ..utils.data_utils import nhwc_to_nchw, to_image_batch
from ..utils.summary_utils import MetricsSink

import math
from timeit import default_timer as timer

import torch
from torch import nn
import torch.nn.functional as F

from tqdm import tqdm

# ++++++++++++++++++++++++++++++++++++++++++++++++++++++++++++++++++++++++++++ #

NONREDEFINABLE_ATTRS = ( 'latent_size', 'dlatent_size', 'start_level', 'max_level',
                         'fmap_base', 'fmap_max', 'mapping_num_fcs', 'leakiness',
                         'use_fused_scale', 'use_blur', 'blur_type', 'use_noise',
                         'normalize_latent', 'use_const_input', 'mbstd_group_size',
                         'loss', 'use_adaptive_noise', 'adaptive_noise_strength',
                         'adaptive_noise_target', 'output_mean_beta',
                         'style_mixing_prob', 'w_avg_beta', )

REDEFINABLE_FROM_LEARNER_ATTRS = ( 'latent_distribution', 'use_truncation',
                                   'truncation_psi', 'truncation_cutoff_level', )

_PREV_TORGB_PARAMS = [ 'prev_torgb.conv2d.weight', 'prev_torgb.conv2d.bias' ]
_PREV_FROMRGB_PARAMS = [ 'prev_fromrgb.conv2d.weight', 'prev_fromrgb.conv2d.bias' ]

_TQDM_HEADER = ( '%9s' * 6 ) % ( 'Res', 'Phase', 'Alpha', 'D Loss', 'G Loss', 'Step' )

# ++++++++++++++++++++++++++++++++++++++++++++++++++++++++++++++++++++++++++++ #

def _grid_shape( num_images ):
  cols = max( int( math.ceil( math.sqrt( num_images ) ) ), 1 )
  return int( math.ceil( num_images / cols ) ), cols

# ++++++++++++++++++++++++++++++++++++++++++++++++++++++++++++++++++++++++++++ #

class StyleGANLearner( object ):
  """GAN Learner for the progressively growing, style-based generator and its ProGAN discriminator.

  Once instantiated, the learner's configuration can be changed only via its
  `self.config` attribute, and architecture-defining attributes not at all.
  """
  def __init__( self, config ):
    super( StyleGANLearner, self ).__init__()

    # If you want to change an attribute in an already-instantiated StyleGANLearner's config,
    # change self.config (below) instead of config:
    self.config = LearnerConfigCopy( config,
                                     self.__class__.__name__,
                                     NONREDEFINABLE_ATTRS,
                                     REDEFINABLE_FROM_LEARNER_ATTRS )

    self.nl = nn.LeakyReLU( negative_slope = self.config.leakiness )
    _blur_type = self.config.blur_type if self.config.use_blur else None

    # Instantiate Neural Networks (both read level & alpha from the same state):
    self.growth_state = GrowthState( max_level = self.config.max_level,
                                     fmap_base = self.config.fmap_base,
                                     fmap_max = self.config.fmap_max )

    self.gen_model = StyleGenerator(
      self.growth_state,
      latent_distribution = self.config.latent_distribution,
      len_latent = self.config.latent_size,
      len_dlatent = self.config.dlatent_size,
      mapping_num_fcs = self.config.mapping_num_fcs,
      use_fused_scale = self.config.use_fused_scale,
      blur_type = _blur_type,
      nl = self.nl,
      normalize_z = self.config.normalize_latent,
      use_noise = self.config.use_noise,
      use_const_input = self.config.use_const_input,
      style_mixing_prob = self.config.style_mixing_prob,
      w_avg_beta = self.config.w_avg_beta,
      use_truncation = self.config.use_truncation,
      truncation_psi = self.config.truncation_psi,
      truncation_cutoff_level = self.config.truncation_cutoff_level
    )

    self.disc_model = ProDiscriminator(
      self.growth_state,
      use_fused_scale = self.config.use_fused_scale,
      blur_type = _blur_type,
      nl = self.nl,
      mbstd_group_size = self.config.mbstd_group_size,
      use_adaptive_noise = self.config.use_adaptive_noise,
      adaptive_noise_strength = self.config.adaptive_noise_strength,
      adaptive_noise_target = self.config.adaptive_noise_target,
      output_mean_beta = self.config.output_mean_beta
    )

    # If one wants to start at a higher level than 1:
    for _ in range( self.config.start_level - 1 ):
      self.gen_model.grow()
      self.disc_model.grow()
    self.growth_state.alpha = 1.

    # Generator and Discriminator state data must match:
    assert self.gen_model.built_level == self.disc_model.built_level == self.growth_state.level

    self.gen_model.to( self.config.dev )
    self.disc_model.to( self.config.dev )

    self.batch_size = self.config.minibatch_size_schedule[ self.growth_state.level - 1 ]

    # Loss Function:
    self.loss_func = get_loss( self.config.loss )

    # Optimizers:
    self.opt_mapping = None
    self.opt_synthesis = None
    self.opt_disc = None
    self._set_optimizer( )

    # Snapshots:
    self.sink = MetricsSink( self.config.save_samples_dir )
    self.z_test = gen_rand_latent_vars( num_samples = self.config.img_grid_sz**2,
                                        length = self.config.latent_size,
                                        distribution = self.latent_distribution,
                                        device = self.config.dev )

    # Training-specific Inits:
    self.curr_step = 0
    self.curr_img_num = 0   # number of real images shown in the current phase
    self.not_trained_yet = True

    # Print configuration:
    print( '-------- Initialized Model Configuration --------' )
    print( self.config )
    print( '-------------------------------------------------' )
    print( '\n    Ready to train!\n' )

  # .......................................................................... #

  @property
  def level( self ):
    return self.growth_state.level

  @property
  def curr_res( self ):
    return self.gen_model.curr_res

  @property
  def latent_distribution( self ):
    return self.gen_model.latent_distribution

  @latent_distribution.setter
  def latent_distribution( self, new_latent_distribution ):
    new_latent_distribution = new_latent_distribution.casefold()
    if new_latent_distribution not in ( 'normal', 'uniform', ):
      raise ValueError( 'Latent distribution must be one of: [ "normal", "uniform" ].' )
    self.gen_model.latent_distribution = new_latent_distribution

  @property
  def use_truncation( self ):
    return self.gen_model.use_truncation

  @use_truncation.setter
  def use_truncation( self, new_use_truncation ):
    self.gen_model.use_truncation = bool( new_use_truncation )

  @property
  def truncation_psi( self ):
    return self.gen_model.truncation_psi

  @truncation_psi.setter
  def truncation_psi( self, new_truncation_psi ):
    _orig_mode = self.gen_model.training
    self.gen_model.eval()
    self.gen_model.truncation_psi = new_truncation_psi
    self.gen_model.train( mode = _orig_mode )

  @property
  def truncation_cutoff_level( self ):
    return self.gen_model.truncation_cutoff_level

  @truncation_cutoff_level.setter
  def truncation_cutoff_level( self, new_truncation_cutoff_level ):
    _orig_mode = self.gen_model.training
    self.gen_model.eval()
    self.gen_model.truncation_cutoff_level = new_truncation_cutoff_level
    self.gen_model.train( mode = _orig_mode )

  # .......................................................................... #

  def grow( self ):
    """Grows both networks by one level, entering its fade-in phase (alpha = 0)."""
    self._zero_grad( )

    self.gen_model.grow()
    self.disc_model.grow()

    # Generator and Discriminator state data must match:
    assert self.gen_model.built_level == self.disc_model.built_level == self.growth_state.level

    self.gen_model.to( self.config.dev )
    self.disc_model.to( self.config.dev )

    self._set_optimizer( )

    # Update level-specific batch size:
    self.batch_size = self.config.minibatch_size_schedule[ self.growth_state.level - 1 ]

  def set_alpha( self, alpha ):
    self.growth_state.alpha = alpha  # this applies to both networks simultaneously

  def _zero_grad( self ):
    self.gen_model.zero_grad( set_to_none = True )
    self.disc_model.zero_grad( set_to_none = True )

  def _set_optimizer( self ):
    """(Re)builds the mapping, synthesis and discriminator optimizers.

    Moments of parameters that the previous optimizers already tracked carry
    over; `prev_torgb` and `prev_fromrgb` are left out while stabilizing.
    """
    betas = ( self.config.beta1, self.config.beta2, )
    adam_mapping = configure_adam_for_gan( lr_base = self.config.lr_mapping, betas = betas, eps = self.config.eps )
    adam_synthesis = configure_adam_for_gan( lr_base = self.config.lr_synthesis, betas = betas, eps = self.config.eps )
    adam_disc = configure_adam_for_gan( lr_base = self.config.lr_disc, betas = betas, eps = self.config.eps )

    if self.growth_state.fade_in_phase:
      synthesis_params = list( self.gen_model.synthesis.parameters() )
      disc_params = list( self.disc_model.parameters() )
    else:
      # don't need `prev_torgb` and `prev_fromrgb` during stabilization
      synthesis_params = list( self.gen_model.synthesis.most_parameters( excluded_params = _PREV_TORGB_PARAMS ) )
      disc_params = list( self.disc_model.most_parameters( excluded_params = _PREV_FROMRGB_PARAMS ) )

    self.opt_mapping = carry_over_optimizer_state(
      self.opt_mapping, adam_mapping( params = self.gen_model.z_to_w.parameters() )
    )
    self.opt_synthesis = carry_over_optimizer_state( self.opt_synthesis, adam_synthesis( params = synthesis_params ) )
    self.opt_disc = carry_over_optimizer_state( self.opt_disc, adam_disc( params = disc_params ) )

  # .......................................................................... #

  def fade_real_images( self, xb ):
    """Blends the real minibatch with its half-resolution version the same way the generated images are faded in."""
    if not self.growth_state.fade_in_phase:
      return xb
    with torch.no_grad():
      xb_low_res = F.interpolate( F.avg_pool2d( xb, kernel_size = 2, stride = 2 ), scale_factor = 2, mode = 'nearest' )
      return lerp( xb_low_res, xb, self.growth_state.alpha )

  def train_step( self, xb ):
    """One generator and one discriminator update on a real minibatch `xb` of shape [N, H, W, 3].

    Returns `( loss_gen, loss_disc, skipped )`; `skipped` is `True` when either
    loss exceeded `config.loss_threshold` and no parameter was updated.
    """
    xb = nhwc_to_nchw( xb.to( self.config.dev ) )
    bs = xb.shape[0]

    self.gen_model.train()
    self.disc_model.train()
    self._zero_grad( )

    #------------------------ TRAIN GENERATOR --------------------------

    # these are set to `False` for the Generator because you don't need
    # the Discriminator's parameters' gradients when chain-ruling back to the generator
    for p in self.disc_model.parameters(): p.requires_grad_( False )

    zb = gen_rand_latent_vars( num_samples = bs, length = self.config.latent_size,
                               distribution = self.latent_distribution, device = self.config.dev )
    xgenb = self.gen_model( zb )
    fake_scores = self.disc_model( xgenb )
    loss_gen = self.loss_func.generator_loss( fake_scores )
    loss_gen.backward()
    self.disc_model.update_output_mean( fake_scores )

    for p in self.disc_model.parameters(): p.requires_grad_( True )

    #------------------------- TRAIN DISCRIMINATOR ----------------------------

    if self.config.fade_real_images:
      xb = self.fade_real_images( xb )

    real_scores = self.disc_model( xb )
    fake_scores = self.disc_model( xgenb.detach() )
    loss_disc = self.loss_func.discriminator_loss( real_scores, fake_scores )
    loss_disc.backward()
    self.disc_model.update_output_mean( fake_scores )

    loss_gen = loss_gen.item(); loss_disc = loss_disc.item()

    # Divergence guard:
    skipped = loss_gen > self.config.loss_threshold or loss_disc > self.config.loss_threshold
    if skipped:
      self._zero_grad( )
      rows, cols = _grid_shape( bs )
      self.sink.add_image( 'large_loss/real', to_image_batch( xb.detach() ), rows, cols, self.curr_step )
      self.sink.add_image( 'large_loss/fake', to_image_batch( xgenb.detach() ), rows, cols, self.curr_step )
    else:
      self.opt_mapping.step()
      self.opt_synthesis.step()
      self.opt_disc.step()

    return loss_gen, loss_disc, skipped

  # .......................................................................... #

  def _next_phase( self ):
    """Moves the phase machine on once `num_images_per_phase` images have been shown in the current phase."""
    if self.growth_state.fade_in_phase:
      self.set_alpha( 1. )
      self._set_optimizer( )
      print( '\nSTABILIZING...\n' )
    elif self.growth_state.level < self.growth_state.max_level:
      _prev_res = self.curr_res
      self.grow()
      print( f'\n\n\nRESOLUTION INCREASED FROM {_prev_res}x{_prev_res} to {self.curr_res}x{self.curr_res}\n' )
      print( f'FADING IN {self.curr_res}x{self.curr_res} RESOLUTION...\n' )
      self.infer( self.curr_step )
      self.add_histograms( self.curr_step )
    else:
      # stabilizing at the final level is open-ended
      return
    self.curr_img_num = 0
    print( _TQDM_HEADER )

  def train( self, image_loader, num_steps = None ):
    """Trains for `num_steps` steps, or until interrupted when `num_steps` is `None`.

    Calling `train` again continues from where the previous call left off.
    """
    if self.not_trained_yet:
      print( 'STARTING FROM STEP 0:\n' )
      # initial histograms
      self.add_histograms( 0 )
    else:
      print( 'CONTINUING FROM WHERE YOU LEFT OFF:\n' )

    if self.growth_state.fade_in_phase:
      print( f'\nFADING IN {self.curr_res}x{self.curr_res} RESOLUTION...\n' )
    else:
      print( '\nSTABILIZING...\n' )
    print( _TQDM_HEADER )

    pbar = tqdm( total = num_steps, unit = ' steps' )
    itr = 0

    try:

      while num_steps is None or itr < num_steps:

        # Determine whether it is time to switch to next fade-in/stabilization phase:
        if self.curr_img_num >= self.config.num_images_per_phase:
          self._next_phase( )

        # Update fading-in parameter alpha:
        if self.growth_state.fade_in_phase:
          self.set_alpha( min( self.curr_img_num / self.config.num_images_per_phase, 1. ) )

        if self.config.debug_print: start = timer()
        xb = image_loader.minibatch( self.batch_size, image_size = self.curr_res )
        if self.config.debug_print:
          end = timer(); print( f'\nMinibatch loading took {end - start} seconds.' )

        if self.config.debug_print: start = timer()
        loss_gen, loss_disc, skipped = self.train_step( xb )
        if self.config.debug_print:
          end = timer(); print( f'Training step took {end - start} seconds.' )

        self.curr_img_num += self.batch_size

        level = self.growth_state.level
        self.sink.add_scalar( f'lv{level}/loss_gen', loss_gen, self.curr_step )
        self.sink.add_scalar( f'lv{level}/loss_disc', loss_disc, self.curr_step )
        if self.config.loss == 'lsgan':
          self.sink.add_scalar( f'lv{level}/disc_output_mean', self.disc_model.output_mean, self.curr_step )

        tqdm_desc = '%9s' % f'{self.curr_res}X{self.curr_res}'
        tqdm_desc += '%9s' % ( 'Fade In' if self.growth_state.fade_in_phase else 'Stab.' )
        tqdm_desc += '%9.3f' % self.growth_state.alpha
        tqdm_desc += '%9.4g' % loss_disc + '%9.4g' % loss_gen
        tqdm_desc += '%9s' % ( f'{self.curr_step}*' if skipped else self.curr_step )
        pbar.set_description( tqdm_desc )
        pbar.update( 1 )

        self.curr_step += 1
        itr += 1
        self.not_trained_yet = False

        if self.curr_step % self.config.num_steps_to_infer == 0:
          self.infer( self.curr_step )
          self.add_histograms( self.curr_step )
          self.sink.flush()

    except KeyboardInterrupt:

      print( '\nTraining interrupted.\n' )

    finally:

      pbar.close()
      self.sink.flush()

  # .......................................................................... #

  @torch.no_grad()
  def generate( self, z, x_mixing = None, mixing_level = None, noise = None ):
    """Images [N, H, W, 3] in [-1,1] from latent vectors `z`, using the generator in evaluation mode."""
    _orig_mode = self.gen_model.training
    self.gen_model.eval()
    try:
      xgenb = self.gen_model( z.to( self.config.dev ), x_mixing = x_mixing,
                              mixing_level = mixing_level, noise = noise )
    finally:
      self.gen_model.train( mode = _orig_mode )
    return to_image_batch( xgenb )

  def infer( self, step ):
    """Writes the image grid generated from the fixed snapshot latents."""
    images = self.generate( self.z_test )
    return self.sink.add_image( f'lv{self.growth_state.level}/samples', images.cpu(),
                                self.config.img_grid_sz, self.config.img_grid_sz, step )

  def add_histograms( self, step ):
    for name, param in self.gen_model.named_parameters():
      self.sink.add_histogram( f'gen/{name}', param, step )
    for name, param in self.disc_model.named_parameters():
      self.sink.add_histogram( f'disc/{name}', param, step )
