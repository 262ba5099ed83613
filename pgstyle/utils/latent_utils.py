# -*- coding: UTF-8 -*-

"""Latent Space-specific utilities.
"""

# ++++++++++++++++++++++++++++++++++++++++++++++++++++++++++++++++++++++++++++ #

import torch

# ++++++++++++++++++++++++++++++++++++++++++++++++++++++++++++++++++++++++++++ #

def gen_rand_latent_vars( num_samples, length, distribution = 'normal',
                          device = 'cuda' if torch.cuda.is_available() else 'cpu' ):
  distribution = distribution.casefold()
  if distribution == 'normal':
    z = torch.randn( num_samples, length, dtype = torch.float32, device = device )
  elif distribution == 'uniform':
    z = torch.rand( num_samples, length, dtype = torch.float32, device = device )
  else:
    raise ValueError( f'Latent distribution "{distribution}" not supported. Options are "normal" and "uniform".' )

  return z
