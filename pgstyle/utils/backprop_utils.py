# -*- coding: UTF-8 -*-

"""Backpropagation utility functions.
"""

# ++++++++++++++++++++++++++++++++++++++++++++++++++++++++++++++++++++++++++++ #

from .._int import SUPPORTED_LOSSES

from abc import ABC, abstractmethod
from functools import partial

import torch
import torch.nn.functional as F

# ++++++++++++++++++++++++++++++++++++++++++++++++++++++++++++++++++++++++++++ #
# Loss Functions:
# ---------------

class GANLoss( ABC ):
  """Adversarial objective: one scalar loss for each network, computed from discriminator scores."""

  name = None

  @abstractmethod
  def generator_loss( self, fake_scores ):
    raise NotImplementedError( 'Can only call `generator_loss` on valid subclasses.' )

  @abstractmethod
  def discriminator_loss( self, real_scores, fake_scores ):
    raise NotImplementedError( 'Can only call `discriminator_loss` on valid subclasses.' )

  def __repr__( self ):
    return f'{self.__class__.__name__}()'


class NonSaturatingLoss( GANLoss ):
  """Non-saturating logistic loss (Goodfellow et al. 2014)."""

  name = 'nonsaturating'

  def generator_loss( self, fake_scores ):
    return F.softplus( -fake_scores ).mean()

  def discriminator_loss( self, real_scores, fake_scores ):
    return F.softplus( -real_scores ).mean() + F.softplus( fake_scores ).mean()


class LSGANLoss( GANLoss ):
  """Least-squares loss (Mao et al. 2017) with target 1 for real and 0 for generated samples."""

  name = 'lsgan'

  def generator_loss( self, fake_scores ):
    return ( ( fake_scores - 1. )**2 ).mean() / 2.

  def discriminator_loss( self, real_scores, fake_scores ):
    return ( ( ( real_scores - 1. )**2 ).mean() + ( fake_scores**2 ).mean() ) / 2.


def get_loss( loss_type ):
  loss_type = loss_type.casefold()
  if loss_type == 'nonsaturating':
    return NonSaturatingLoss()
  elif loss_type == 'lsgan':
    return LSGANLoss()
  else:
    message = f'Loss "{loss_type}" not supported. Options are: [ ' + \
              ', '.join( f"'{l}'" for l in SUPPORTED_LOSSES ) + ' ]'
    raise ValueError( message )

# ++++++++++++++++++++++++++++++++++++++++++++++++++++++++++++++++++++++++++++ #
# Optimizer:
# ----------

def configure_adam_for_gan( lr_base, betas:tuple, eps = 1.e-8, wd = 0 ):
  assert isinstance( betas, tuple )

  adam_gan = partial(
    torch.optim.Adam,
    lr = lr_base,
    betas = betas,
    eps = eps,
    weight_decay = wd
  )

  return adam_gan

def carry_over_optimizer_state( old_opt, new_opt ):
  """Copies per-parameter state (e.g. Adam moments) for every parameter both optimizers share.

  Parameters that only `new_opt` knows about (i.e. freshly grown layers) start
  from empty state.
  """
  if old_opt is None:
    return new_opt
  for group in new_opt.param_groups:
    for p in group[ 'params' ]:
      if p in old_opt.state:
        new_opt.state[ p ] = old_opt.state[ p ]
  return new_opt
