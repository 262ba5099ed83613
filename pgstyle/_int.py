# -*- coding: UTF-8 -*-

"""Used internally.
"""

#++++++++++++++++++++++++++++++++++++++++++++++++++++++++++++++++++++++++++++++#

import argparse
import copy

#++++++++++++++++++++++++++++++++++++++++++++++++++++++++++++++++++++++++++++++#

# Currently Supported Loss Strategies:
SUPPORTED_LOSSES = ( 'nonsaturating', 'lsgan', )

# Currently Supported Blur Filters:
SUPPORTED_BLUR_TYPES = ( 'binomial', 'box', )

FMAP_SAMPLES = 3
RES_INIT = 4

#++++++++++++++++++++++++++++++++++++++++++++++++++++++++++++++++++++++++++++++#

class GrowthOverflowError( RuntimeError ):
  """Raised when a network is asked to grow past its maximum level."""
  pass

def level_to_res( level ):
  """Image side length at a given growth level (level 1 is 4x4)."""
  return RES_INIT * 2**( level - 1 )

#++++++++++++++++++++++++++++++++++++++++++++++++++++++++++++++++++++++++++++++#

# https://stackoverflow.com/questions/15008758/parsing-boolean-values-with-argparse
def str2bool( v ):
  """Enables intuitive boolean keyword argument specifications with argparse."""
  if isinstance( v, bool ):
    return v
  if v.casefold() in ( 'yes', 'true', 't', 'y', '1' ):
    return True
  elif v.casefold() in ( 'no', 'false', 'f', 'n', '0' ):
    return False
  else:
    raise argparse.ArgumentTypeError( 'Boolean value expected.' )

#++++++++++++++++++++++++++++++++++++++++++++++++++++++++++++++++++++++++++++++#

class LearnerConfigCopy( object ):
  """Frozen-where-it-matters copy of an `argparse.Namespace` owned by a learner.

  Attributes listed in `nonredefinable_attrs` define the architecture and cannot
  be reassigned once the learner exists. Attributes listed in
  `redefinable_from_learner_attrs` must be changed through the learner itself.
  """
  def __init__( self, config, learner_class:str,
                nonredefinable_attrs:tuple, redefinable_from_learner_attrs:tuple ):
    assert isinstance( config, argparse.Namespace )
    super( LearnerConfigCopy, self ).__init__()

    object.__setattr__( self, '__dict__', copy.deepcopy( config.__dict__ ) )

    self.__dict__[ 'learner_class' ] = learner_class
    self.__dict__[ '_nonredefinable_attrs' ] = nonredefinable_attrs
    self.__dict__[ '_redefinable_from_learner_attrs' ] = redefinable_from_learner_attrs

  def __setattr__( self, name, value ):
    if name in self._nonredefinable_attrs:
      message = f"{self.learner_class}().config.{name} attribute cannot be changed once {self.learner_class} is instantiated.\n" + \
                f"Instead, build a new config with --{name}={value} and instantiate a new {self.learner_class}."
      raise AttributeError( message )
    elif name in self._redefinable_from_learner_attrs:
      message = f"{self.learner_class}().config.{name} attribute cannot be changed.\n" + \
                f" Instead, please call the corresponding {self.learner_class}() method to implement this change,\n" + \
                f" while {self.learner_class}().config.{name} will remain equal to its value when the {self.learner_class} was first initialized."
      raise AttributeError( message )
    else:
      super( LearnerConfigCopy, self ).__setattr__( name, value )

  def __str__( self ):
    print_obj = ''
    for k, v in vars( self ).items():
      if k not in ( '_nonredefinable_attrs', '_redefinable_from_learner_attrs', 'learner_class', ):
        print_obj += f'  {k}: {v}\n'
    return print_obj[:-1]
