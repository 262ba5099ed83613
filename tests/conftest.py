# -*- coding: UTF-8 -*-

import pytest
import torch
from torch import nn

from pgstyle.progan.base import GrowthState
from pgstyle.progan.architectures import ProDiscriminator
from pgstyle.stylegan.architectures import StyleGenerator

#++++++++++++++++++++++++++++++++++++++++++++++++++++++++++++++++++++++++++++++#

# level 1 -> 16 channels, level 2 -> 16, level 3 -> 8
FMAP_BASE = 64
FMAP_MAX = 16
LEN_LATENT = 32

@pytest.fixture( autouse = True )
def _seed( ):
  torch.manual_seed( 0 )

@pytest.fixture
def growth_state( ):
  return GrowthState( max_level = 3, fmap_base = FMAP_BASE, fmap_max = FMAP_MAX )

@pytest.fixture
def gen( growth_state ):
  return StyleGenerator( growth_state, len_latent = LEN_LATENT, len_dlatent = LEN_LATENT,
                         mapping_num_fcs = 2, blur_type = 'binomial',
                         truncation_cutoff_level = 2 )

@pytest.fixture
def disc( growth_state ):
  return ProDiscriminator( growth_state, blur_type = 'binomial' )

@pytest.fixture
def small_args( tmp_path ):
  return [
    '--dev=cpu', '--random_seed=0', '--max_level=2', '--fmap_base=64', '--fmap_max=16',
    f'--latent_size={LEN_LATENT}', f'--dlatent_size={LEN_LATENT}', '--mapping_num_fcs=2',
    '--minibatch_size_schedule=4,4', '--num_images_per_phase=8', '--num_steps_to_infer=1000',
    '--img_grid_sz=2', '--loss_threshold=1e6',
    f'--save_samples_dir={tmp_path / "samples"}'
  ]
