# -*- coding: UTF-8 -*-

"""Computes the runtime weight scale used by every equalized-learning-rate layer.

Weights are drawn from N(0,1) and biases start at 0; the He-style constant
`gain / sqrt(fan_in)` is applied to the layer input at every forward pass
instead of being baked into the weights.
"""

# ++++++++++++++++++++++++++++++++++++++++++++++++++++++++++++++++++++++++++++ #

import numpy as np
import torch

# ++++++++++++++++++++++++++++++++++++++++++++++++++++++++++++++++++++++++++++ #

class Initializer( object ):
  """Initializes a layer's parameters and reports its equalized-LR weight scale."""
  def __init__( self, gain = np.sqrt( 2 ) ):
    super( Initializer, self ).__init__()

    if gain <= 0:
      raise ValueError( 'Initializer gain must be positive.' )
    self.gain = float( gain )

  @torch.no_grad()
  def init_layer( self, weight, bias = None ):
    weight.normal_( 0., 1. )
    if bias is not None:
      bias.fill_( 0 )

  @torch.no_grad()
  def get_wscale( self, tensor, transposed = False ):
    fan_in = self._calculate_fan_in( tensor = tensor, transposed = transposed )
    return self.gain / np.sqrt( fan_in )

  @torch.no_grad()
  def _calculate_fan_in( self, tensor, transposed = False ):
    dimensions = tensor.dim()
    if dimensions < 2:
      raise ValueError(
        'Fan in cannot be computed for tensor with fewer than 2 dimensions.'
      )

    if dimensions == 2:  # Linear
      return tensor.size(1)

    receptive_field_size = tensor[0][0].numel()
    # ConvTranspose2d stores its weight as [in, out, kh, kw]
    return tensor.size(0 if transposed else 1) * receptive_field_size
