# -*- coding: UTF-8 -*-

"""Base architecture class for progressively growing networks.

The growth metadata (`level` and `alpha`) lives in a single `GrowthState`
object that the generator and the discriminator share, so the two networks
can never observe different levels or fading parameters.
"""

#++++++++++++++++++++++++++++++++++++++++++++++++++++++++++++++++++++++++++++++#

from .._int import GrowthOverflowError, level_to_res

from abc import ABC, abstractmethod

from torch import nn

#++++++++++++++++++++++++++++++++++++++++++++++++++++++++++++++++++++++++++++++#

FMAP_BASE = 2048
FMAP_MAX = 256

#++++++++++++++++++++++++++++++++++++++++++++++++++++++++++++++++++++++++++++++#

class GrowthState( object ):
  """Level/alpha state machine driven by the training loop.

  `level` starts at 1 (4x4) and only ever increases, one step per `advance()`.
  `alpha` is the fading-in parameter in [0,1]; it is reset to 0 whenever a new
  level is entered.
  """

  _alpha_tol = 1.e-8

  def __init__( self, max_level, fmap_base = FMAP_BASE, fmap_max = FMAP_MAX ):
    super( GrowthState, self ).__init__()

    if max_level < 1:
      raise ValueError( 'max_level must be >= 1.' )
    self.max_level = int( max_level )
    self.fmap_base = fmap_base
    self.fmap_max = fmap_max

    self._level = 1
    self._alpha = 1.

  def advance( self ):
    """Enter the next level; fatal if the architecture would outgrow `max_level`."""
    if self._level >= self.max_level:
      message = f'Cannot grow past max_level {self.max_level} (current level is {self._level}).'
      raise GrowthOverflowError( message )
    self._level += 1
    self._alpha = 0.

  def get_fmap( self, level ):
    return min( int( self.fmap_base / ( 2**level ) ), self.fmap_max )

  @property
  def level( self ):
    return self._level

  @property
  def res( self ):
    return level_to_res( self._level )

  @property
  def fade_in_phase( self ):
    return self._level > 1 and self._alpha < 1.

  @property
  def alpha( self ):
    return self._alpha

  @alpha.setter
  def alpha( self, new_alpha ):
    if not ( -self._alpha_tol < new_alpha < 1. + self._alpha_tol ):
      raise ValueError( 'Input alpha parameter must be in the range [0,1].' )

    self._alpha = min( max( float( new_alpha ), 0. ), 1. )

  def __repr__( self ):
    return f'{self.__class__.__name__}(level={self._level}, alpha={self._alpha:.4f}, max_level={self.max_level})'

#++++++++++++++++++++++++++++++++++++++++++++++++++++++++++++++++++++++++++++++#

class ProGAN( nn.Module, ABC ):
  """This base class keeps track of the metadata that define the current state
     of a progressively growing network.

  Every subclass reads level and alpha from its (possibly shared) `GrowthState`
  and keeps its own `built_level`, the number of resolution levels whose blocks
  it has actually constructed. Calling `grow()` on the first of two networks
  sharing a state advances the state; the second network only catches up.
  """
  def __init__( self, growth_state ):
    super( ProGAN, self ).__init__()

    if not isinstance( growth_state, GrowthState ):
      raise TypeError( '`growth_state` must be a GrowthState instance.' )
    self.growth_state = growth_state
    self.built_level = 1

  def grow( self ):
    """Append the block for the next level, keeping every existing block intact."""
    if self.built_level == self.growth_state.level:
      self.growth_state.advance()
    self.built_level += 1
    self._append_block( level = self.built_level )

  @abstractmethod
  def _append_block( self, level ):
    raise NotImplementedError( 'Can only call `_append_block` on valid subclasses.' )

  def get_fmap( self, level ):
    return self.growth_state.get_fmap( level )

  def most_parameters( self, recurse = True, excluded_params:list = [] ):
    """`torch.nn.Module.parameters()` generator method but with the option to exclude specified parameters."""
    for name, params in self.named_parameters( recurse = recurse ):
      if name not in excluded_params:
        yield params

  def _check_synchronized( self ):
    if self.built_level != self.growth_state.level:
      message = f'{self.__class__.__name__} is built up to level {self.built_level} but the shared growth state' + \
                f' is at level {self.growth_state.level}; call grow() on every network sharing the state.'
      raise RuntimeError( message )

  @property
  def level( self ):
    return self.growth_state.level

  @property
  def max_level( self ):
    return self.growth_state.max_level

  @property
  def curr_res( self ):
    return level_to_res( self.built_level )

  @property
  def fmap( self ):
    return self.get_fmap( self.built_level )

  @property
  def fade_in_phase( self ):
    return self.growth_state.fade_in_phase

  @property
  def alpha( self ):
    return self.growth_state.alpha

  @alpha.setter
  def alpha( self, new_alpha ):
    self.growth_state.alpha = new_alpha

  @abstractmethod
  def forward( self, x ):
    raise NotImplementedError( 'Can only call `forward` on valid subclasses.' )
