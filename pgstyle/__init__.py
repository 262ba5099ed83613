# -*- coding: UTF-8 -*-

"""pgstyle: a progressively growing, style-based GAN.

  Typical usage example:

  from pgstyle import get_config, StyleGANLearner
  from pgstyle.utils.data_utils import ImageLoader

  config = get_config( [ '--image_dir=path/to/images' ] )
  learner = StyleGANLearner( config )
  learner.train( ImageLoader( config.image_dir ), num_steps = 1000 )
"""

#++++++++++++++++++++++++++++++++++++++++++++++++++++++++++++++++++++++++++++++#

from ._int import GrowthOverflowError
from .config import get_config
from .progan.base import GrowthState
from .stylegan.learner import StyleGANLearner

__version__ = '0.1.0'

#++++++++++++++++++++++++++++++++++++++++++++++++++++++++++++++++++++++++++++++#
