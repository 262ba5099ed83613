# -*- coding: UTF-8 -*-

"""Builds the configuration (an `argparse.Namespace`) that a StyleGANLearner is instantiated with.

Every hyperparameter has a default that works; override any of them with
'--[keyword argument]' strings.

  Typical usage examples:

  config = get_config( )                                             # all defaults
  config = get_config( [ '--max_level=5', '--loss=lsgan', '--dev=cpu' ] )

To see what each argument does, print `get_parser().format_help()`.
"""

# ++++++++++++++++++++++++++++++++++++++++++++++++++++++++++++++++++++++++++++ #

from ._int import str2bool, SUPPORTED_LOSSES, SUPPORTED_BLUR_TYPES

import argparse
from pathlib import Path

import numpy as np
import torch

# ++++++++++++++++++++++++++++++++++++++++++++++++++++++++++++++++++++++++++++ #

DEV = 'cuda' if torch.cuda.is_available() else 'cpu'

MINIBATCH_SIZE_SCHEDULE = ( 128, 64, 64, 32, 32, 16, 16, )
NUM_IMAGES_PER_PHASE = 800000

# ++++++++++++++++++++++++++++++++++++++++++++++++++++++++++++++++++++++++++++ #

def _int_tuple( s ):
  """'128,64,32' -> ( 128, 64, 32, )"""
  if isinstance( s, ( tuple, list, ) ):
    return tuple( int( v ) for v in s )
  try:
    return tuple( int( v ) for v in s.replace( ' ', '' ).split( ',' ) if v )
  except ValueError:
    raise argparse.ArgumentTypeError( 'Comma-separated list of integers expected.' )

def _str_tuple( s ):
  if isinstance( s, ( tuple, list, ) ):
    return tuple( s )
  return tuple( v for v in s.replace( ' ', '' ).split( ',' ) if v )

def _none_or_str2bool( v ):
  if v is None or ( isinstance( v, str ) and v.casefold() in ( 'none', 'auto', ) ):
    return None
  return str2bool( v )

# ++++++++++++++++++++++++++++++++++++++++++++++++++++++++++++++++++++++++++++ #

def get_parser( ):

  parser = argparse.ArgumentParser( prog = 'pgstyle', description = 'Progressively growing style-based GAN (model configuration)' )

  # ---------------------------------------------------------------------------- #

  # HARDWARE & REPRODUCIBILITY:
  # ---------------------------

  parser.add_argument(
    '--dev',
    type = str.casefold,
    default = DEV,
    choices = [ 'cpu', 'cuda' ],
    help = 'device for memory allocation for the generator and discriminator'
  )
  parser.add_argument( '--random_seed', type = int, default = -1, \
    help = 'seed for RNG operations such as latent vector sampling, noise, etc.; making this a non-negative integer (instead of -1)' + \
           ' leads to deterministic output, which may be desired if a goal is reproducibility; making this -1 randomly samples the seed instead' )
  parser.add_argument( '--debug_print', type = str2bool, nargs = '?', const = True, default = False, \
    help = 'whether to print the time spent loading each minibatch and running each training step' )

  # ---------------------------------------------------------------------------- #

  # ARCHITECTURE:
  # -------------

  parser.add_argument( '--latent_size', type = int, default = 256, help = 'number of elements that compose latent vector z' )
  parser.add_argument( '--dlatent_size', type = int, default = 256, \
    help = 'number of elements that compose the style vector w output by the mapping network' )
  parser.add_argument( '--latent_distribution', type = str.casefold, default = 'normal', choices = [ 'normal', 'uniform' ], \
    help = 'to sample elements of latent vector from normal distribution or uniform distribution' )

  parser.add_argument( '--start_level', type = int, default = 1, \
    help = 'resolution level to start training at; the image side at level L is 2**(L+1), so level 1 is 4x4' )
  parser.add_argument( '--max_level', type = int, default = 7, \
    help = 'final resolution level; the networks never grow past it' )

  parser.add_argument( '--fmap_base', type = int, default = 2048, \
    help = 'number of feature maps at level L is min(fmap_base / 2**L, fmap_max)' )
  parser.add_argument( '--fmap_max', type = int, default = 256, help = 'maximum number of feature maps at any level' )

  parser.add_argument( '--mapping_num_fcs', type = int, default = 6, \
    help = 'number of fully-connected layers in the mapping network' )
  parser.add_argument( '--leakiness', type = float, default = .2, help = 'negative slope of every Leaky ReLU' )

  parser.add_argument( '--use_fused_scale', type = str2bool, nargs = '?', const = True, default = True, \
    help = 'whether to fold up/downsampling into (transposed) strided convolutions instead of separate resampling layers' )
  parser.add_argument( '--use_blur', type = str2bool, nargs = '?', const = True, default = True, \
    help = 'whether to low-pass filter feature maps after upsampling (generator) and before downsampling (discriminator)' )
  parser.add_argument( '--blur_type', type = str.casefold, default = 'binomial', choices = list( SUPPORTED_BLUR_TYPES ), \
    help = 'low-pass filter kernel; ignored if --use_blur is `False`' )
  parser.add_argument( '--use_noise', type = str2bool, nargs = '?', const = True, default = True, \
    help = 'whether to inject per-pixel noise into every generator modulation stage' )
  parser.add_argument( '--normalize_latent', type = str2bool, nargs = '?', const = True, default = True, \
    help = 'whether to normalize latent vector z by its RMS magnitude (PixelNorm) before the mapping network' )
  parser.add_argument( '--use_const_input', type = str2bool, nargs = '?', const = True, default = True, \
    help = 'whether the 4x4 base image is a learned constant (`True`) or a projection of the style vector (`False`)' )
  parser.add_argument( '--mbstd_group_size', type = int, default = 4, \
    help = 'group size for the minibatch standard deviation layer; -1 means no minibatch standard deviation layer' )

  # ---------------------------------------------------------------------------- #

  # LOSS & REGULARIZATION:
  # ----------------------

  parser.add_argument( '--loss', type = str.casefold, default = 'nonsaturating', choices = list( SUPPORTED_LOSSES ), \
    help = 'type of loss function to use for the generator and discriminator' )
  parser.add_argument( '--use_adaptive_noise', type = _none_or_str2bool, default = None, \
    help = "whether to inject adaptive per-channel noise in the discriminator; 'auto' (the default) turns it on only for --loss=lsgan" )
  parser.add_argument( '--adaptive_noise_strength', type = float, default = .2, \
    help = 'multiplicative coefficient k of the adaptive discriminator noise scale k * max(output_mean - target, 0)**2' )
  parser.add_argument( '--adaptive_noise_target', type = float, default = .5, \
    help = 'mean discriminator output on generated samples above which adaptive noise kicks in' )
  parser.add_argument( '--output_mean_beta', type = float, default = .9, \
    help = "EWMA decay coefficient of the discriminator's mean output on generated samples" )
  parser.add_argument( '--loss_threshold', type = float, default = 10., \
    help = 'if either loss exceeds this value in a training step, that step does not update any parameters' )

  parser.add_argument( '--style_mixing_prob', type = float, default = .9, \
    help = 'probability of style-mixing regularization for each generated minibatch during training' )
  parser.add_argument( '--w_avg_beta', type = float, default = .99, \
    help = 'EWMA decay coefficient of the running average of style vectors w' )
  parser.add_argument( '--use_truncation', type = str2bool, nargs = '?', const = True, default = False, \
    help = 'whether to apply the truncation trick on w in evaluation mode' )
  parser.add_argument( '--truncation_psi', type = float, default = .7, \
    help = 'truncation trick interpolation factor towards the average style vector' )
  parser.add_argument( '--truncation_cutoff_level', type = int, default = 4, \
    help = 'truncation is applied to the styles of every level up to and including this one' )

  # ---------------------------------------------------------------------------- #

  # OPTIMIZATION:
  # -------------

  parser.add_argument( '--lr_mapping', type = float, default = 1.e-5, help = 'learning rate of the mapping network' )
  parser.add_argument( '--lr_synthesis', type = float, default = 1.e-3, help = 'learning rate of the synthesis network' )
  parser.add_argument( '--lr_disc', type = float, default = 1.e-3, help = 'learning rate of the discriminator' )
  parser.add_argument( '--beta1', type = float, default = 0., help = 'momentum EWMA decay coefficient (default value recommended for Adam)' )
  parser.add_argument( '--beta2', type = float, default = .99, help = 'variance/RMSprop EWMA decay coefficient (default recommended for Adam)' )
  parser.add_argument( '--eps', type = float, default = 1.e-8, help = 'to prevent division by 0 (default value recommended for Adam)' )

  # ---------------------------------------------------------------------------- #

  # SCHEDULE:
  # ---------

  parser.add_argument( '--minibatch_size_schedule', type = _int_tuple, default = MINIBATCH_SIZE_SCHEDULE, \
    help = 'comma-separated minibatch size for every level, starting at level 1 (larger batches at lower resolutions)' )
  parser.add_argument( '--num_images_per_phase', type = int, default = NUM_IMAGES_PER_PHASE, \
    help = 'number of real images shown to the discriminator before each fade-in/stabilization phase transition' )
  parser.add_argument( '--fade_real_images', type = str2bool, nargs = '?', const = True, default = True, \
    help = 'whether to fade in the resolution of the real images the same way the generated images are faded in' )

  # ---------------------------------------------------------------------------- #

  # DATA & OUTPUT:
  # --------------

  parser.add_argument( '--image_dir', type = Path, default = Path( './images' ), help = 'directory holding the training images' )
  parser.add_argument( '--image_extensions', type = _str_tuple, default = ( '.png', ), \
    help = 'comma-separated file extensions of the training images' )
  parser.add_argument( '--num_workers', type = int, default = 8, help = 'number of threads that decode each minibatch' )

  parser.add_argument( '--num_steps_to_infer', type = int, default = 3000, \
    help = 'number of training steps between image-grid and histogram snapshots' )
  parser.add_argument( '--img_grid_sz', type = int, default = 8, \
    help = 'image grid snapshots show img_grid_sz x img_grid_sz samples from a fixed batch of latent vectors' )
  parser.add_argument( '--save_samples_dir', type = Path, default = Path( './samples' ), \
    help = 'directory where scalars, image grids and histograms are written' )

  return parser

# ++++++++++++++++++++++++++++++++++++++++++++++++++++++++++++++++++++++++++++ #

def get_config( args = None ):
  """Parses `args` (a list of '--key=value' strings; `None` means all defaults) and post-processes the result."""
  parser = get_parser( )
  config = parser.parse_args( [] if args is None else args )

  # ++++++++++++++++++++++++++++++++++++++++++++++++++++++++++++++++++++++++++++ #
  # Post-processing:
  # ----------------

  if config.dev == 'cuda' and not torch.cuda.is_available():
    raise ValueError( '--dev=cuda was requested but CUDA is not available.' )
  config.dev = torch.device( config.dev )

  if config.random_seed == -1:
    np.random.seed( None )
    torch.seed()  # single-processor, CUDA or CPU
  elif 0 <= config.random_seed < 2**32:
    np.random.seed( config.random_seed )
    torch.manual_seed( config.random_seed )  # single-processor, CUDA or CPU
    torch.backends.cudnn.deterministic = True
  else:
    raise ValueError( "--random_seed must either be -1 for random seeding or" + \
                      " be in the range [0,2**32) to accommodate numpy's and" + \
                      " torch's seeding specifications." )

  if not 1 <= config.start_level <= config.max_level:
    raise ValueError( '--start_level must be in the range [1, --max_level].' )

  if len( config.minibatch_size_schedule ) < config.max_level:
    message = f'--minibatch_size_schedule must hold a minibatch size for each of the {config.max_level} levels,' + \
              f' got {len( config.minibatch_size_schedule )}.'
    raise ValueError( message )
  if any( bs < 1 for bs in config.minibatch_size_schedule ):
    raise ValueError( '--minibatch_size_schedule entries must be positive.' )

  if config.mbstd_group_size < -1 or not config.mbstd_group_size:
    raise ValueError( "--mbstd_group_size must either be -1 to indicate not applying" + \
                      " minibatch standard deviation or a positive integer indicating" + \
                      " the group size for the minibatch standard deviation layer." )

  if config.truncation_cutoff_level < 1:
    raise ValueError( '--truncation_cutoff_level must be a positive integer.' )
  if config.truncation_cutoff_level > config.max_level:
    if config.use_truncation:
      raise ValueError( '--truncation_cutoff_level must not exceed --max_level when --use_truncation is `True`.' )
    config.truncation_cutoff_level = config.max_level

  if config.use_adaptive_noise is None:
    config.use_adaptive_noise = ( config.loss == 'lsgan' )

  if not config.use_blur:
    config.blur_type = None

  if config.num_images_per_phase < 1 or config.num_steps_to_infer < 1:
    raise ValueError( '--num_images_per_phase and --num_steps_to_infer must be positive.' )

  return config
