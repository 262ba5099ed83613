# -*- coding: UTF-8 -*-

import pytest
import torch

from pgstyle.config import get_config, get_parser

#++++++++++++++++++++++++++++++++++++++++++++++++++++++++++++++++++++++++++++++#

def test_defaults():
  config = get_config( [ '--dev=cpu' ] )
  assert config.dev == torch.device( 'cpu' )
  assert ( config.latent_size, config.dlatent_size, config.max_level, ) == ( 256, 256, 7, )
  assert ( config.fmap_base, config.fmap_max, ) == ( 2048, 256, )
  assert config.minibatch_size_schedule == ( 128, 64, 64, 32, 32, 16, 16, )
  assert config.loss == 'nonsaturating'
  assert config.loss_threshold == 10.
  assert config.use_adaptive_noise is False
  assert config.blur_type == 'binomial'

def test_adaptive_noise_follows_loss_unless_given():
  assert get_config( [ '--dev=cpu', '--loss=lsgan' ] ).use_adaptive_noise is True
  assert get_config( [ '--dev=cpu', '--loss=lsgan', '--use_adaptive_noise=false' ] ).use_adaptive_noise is False
  assert get_config( [ '--dev=cpu', '--use_adaptive_noise=true' ] ).use_adaptive_noise is True

def test_flags_and_lists_parse():
  config = get_config( [ '--dev=cpu', '--use_blur=no', '--minibatch_size_schedule=8, 4',
                         '--max_level=2', '--truncation_cutoff_level=2',
                         '--image_extensions=.png,.jpg' ] )
  assert config.blur_type is None
  assert config.minibatch_size_schedule == ( 8, 4, )
  assert config.image_extensions == ( '.png', '.jpg', )

@pytest.mark.parametrize( 'args', [
  [ '--mbstd_group_size=0' ],
  [ '--mbstd_group_size=-3' ],
  [ '--random_seed=-2' ],
  [ '--start_level=3', '--max_level=2', '--truncation_cutoff_level=2' ],
  [ '--max_level=8' ],
  [ '--truncation_cutoff_level=9', '--use_truncation=true' ],
  [ '--truncation_cutoff_level=0' ],
] )
def test_invalid_configurations( args ):
  with pytest.raises( ValueError ):
    get_config( [ '--dev=cpu' ] + args )

def test_unsupported_choice_exits():
  with pytest.raises( SystemExit ):
    get_parser().parse_args( [ '--loss=wgan' ] )

def test_small_max_level_with_default_truncation():
  config = get_config( [ '--dev=cpu', '--max_level=2', '--minibatch_size_schedule=4,4' ] )
  assert config.max_level == 2
  assert config.truncation_cutoff_level == 2
  assert config.use_truncation is False
