# -*- coding: UTF-8 -*-

"""Minimal on-disk metrics sink for scalars, image grids and parameter histograms.
"""

# ++++++++++++++++++++++++++++++++++++++++++++++++++++++++++++++++++++++++++++ #

from collections import defaultdict
from pathlib import Path

import numpy as np
import matplotlib
matplotlib.use( 'Agg' )
import matplotlib.pyplot as plt
plt.rcParams.update( { 'figure.max_open_warning': 0 } )
import torch

# ++++++++++++++++++++++++++++++++++++++++++++++++++++++++++++++++++++++++++++ #

def _tag_to_fname( tag ):
  return tag.replace( '/', '_' ).replace( ' ', '_' )

def make_image_grid( images, rows, cols, pad = 1 ):
  """Tiles `[N, H, W, 3]` images in [-1,1] into one `[rows*(H+pad)+pad, cols*(W+pad)+pad, 3]` array in [0,1]."""
  if isinstance( images, torch.Tensor ):
    images = images.detach().cpu().numpy()
  images = np.asarray( images, dtype = np.float32 )
  if images.ndim != 4 or images.shape[3] != 3:
    raise ValueError( f'Expected images of shape [N, H, W, 3], got {list( images.shape )}.' )
  if len( images ) > rows * cols:
    raise ValueError( f'{len( images )} images do not fit in a {rows}x{cols} grid.' )

  n, h, w, c = images.shape
  grid = np.zeros( ( rows*( h + pad ) + pad, cols*( w + pad ) + pad, c ), dtype = np.float32 )
  for idx in range( n ):
    row, col = divmod( idx, cols )
    top = pad + row*( h + pad ); left = pad + col*( w + pad )
    grid[ top:top + h, left:left + w ] = images[ idx ]

  return np.clip( ( grid + 1. ) / 2., 0., 1. )

# ++++++++++++++++++++++++++++++++++++++++++++++++++++++++++++++++++++++++++++ #

class MetricsSink( object ):
  """Writes everything under `log_dir`: PNG image grids, PNG histograms and a `scalars.npz` on `flush()`."""
  def __init__( self, log_dir ):
    super( MetricsSink, self ).__init__()

    self.log_dir = Path( log_dir )
    self.log_dir.mkdir( parents = True, exist_ok = True )

    self.scalars = defaultdict( list )

  def add_scalar( self, tag, value, step ):
    if isinstance( value, torch.Tensor ):
      value = value.item()
    self.scalars[ tag ].append( ( int( step ), float( value ), ) )

  def add_image( self, tag, images, rows, cols, step ):
    grid = make_image_grid( images, rows, cols )
    save_path = self.log_dir/'images'/f'{_tag_to_fname( tag )}_{step:08d}.png'
    save_path.parent.mkdir( parents = True, exist_ok = True )
    plt.imsave( str( save_path ), grid )
    return save_path

  def add_histogram( self, tag, values, step, bins = 64 ):
    if isinstance( values, torch.Tensor ):
      values = values.detach().cpu().numpy()
    values = np.asarray( values ).ravel()

    save_path = self.log_dir/'histograms'/f'{_tag_to_fname( tag )}_{step:08d}.png'
    save_path.parent.mkdir( parents = True, exist_ok = True )
    fig = plt.figure( figsize = ( 4., 3., ) )
    ax = fig.subplots()
    ax.hist( values, bins = bins )
    ax.set_title( f'{tag} (step {step})', fontsize = 8 )
    fig.tight_layout()
    fig.savefig( str( save_path ) )
    plt.close( fig )
    return save_path

  def flush( self ):
    arrays = { _tag_to_fname( tag ): np.asarray( vals, dtype = np.float64 ) \
               for tag, vals in self.scalars.items() }
    np.savez( str( self.log_dir/'scalars.npz' ), **arrays )
