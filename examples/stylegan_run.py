# -*- coding: UTF-8 -*-

#++++++++++++++++++++++++++++++++++++++++++++++++++++++++++++++++++++++++++++++#

# NOTE: Pass any option of `pgstyle.config` on the command line, e.g.
#       '$ python stylegan_run.py --image_dir=path/to/images --max_level=6'

import sys

from pgstyle.config import get_config
from pgstyle.utils.data_utils import ImageLoader
from pgstyle.stylegan.learner import StyleGANLearner

#++++++++++++++++++++++++++++++++++++++++++++++++++++++++++++++++++++++++++++++#

NUM_STEPS = 100000

#++++++++++++++++++++++++++++++++++++++++++++++++++++++++++++++++++++++++++++++#

config = get_config( sys.argv[1:] )

image_loader = ImageLoader( config.image_dir, extensions = config.image_extensions,
                            num_workers = config.num_workers )

# instantiate StyleGANLearner and train:
learner = StyleGANLearner( config )
print( learner.gen_model.__class__.__name__, learner.disc_model.__class__.__name__ )
learner.train( image_loader, num_steps = NUM_STEPS )   # train for NUM_STEPS steps
learner.train( image_loader, num_steps = NUM_STEPS )   # and for another NUM_STEPS steps

# sample from the truncated style space:
learner.use_truncation = True
learner.truncation_psi = .7
images = learner.generate( learner.z_test )
learner.sink.add_image( 'final/truncated_samples', images.cpu(),
                        config.img_grid_sz, config.img_grid_sz, learner.curr_step )
