# -*- coding: UTF-8 -*-

"""Utilities for feeding real images to the learner and converting between image layouts.

The learner consumes minibatches of shape [N, H, W, 3] with values in [-1,1];
`ImageLoader` produces exactly that from a directory of image files, resizing
every image to the resolution that is requested on each call.

  Typical usage example:

  loader = ImageLoader( './images', extensions = ( '.png', '.jpg', ) )
  xb = loader.minibatch( 16, image_size = 8 )   # [16, 8, 8, 3]
"""

# ++++++++++++++++++++++++++++++++++++++++++++++++++++++++++++++++++++++++++++ #

from concurrent.futures import ThreadPoolExecutor
from pathlib import Path
import random

from PIL import Image
import torch
from torchvision import transforms

# ++++++++++++++++++++++++++++++++++++++++++++++++++++++++++++++++++++++++++++ #
# Layout Conversion:
# ------------------

def nhwc_to_nchw( xb ):
  return xb.permute( 0, 3, 1, 2 ).contiguous()

def nchw_to_nhwc( xb ):
  return xb.permute( 0, 2, 3, 1 ).contiguous()

def to_image_batch( xb ):
  """Generator output [N, 3, H, W] -> images [N, H, W, 3] clamped to [-1,1]."""
  return nchw_to_nhwc( xb.clamp( -1., 1. ) )

# ++++++++++++++++++++++++++++++++++++++++++++++++++++++++++++++++++++++++++++ #
# Image Loading:
# --------------

class ImageLoader( object ):
  """Shuffled, index-based traversal over the image files of one directory, with wraparound.

  Minibatches are decoded concurrently by a thread pool; every worker writes
  into its own slot of a pre-sized list, so no two workers share an append.
  """
  def __init__( self, image_dir, extensions = ( '.png', ), num_workers = 8, shuffle_on_reset = True ):
    super( ImageLoader, self ).__init__()

    self.image_dir = Path( image_dir )
    if not self.image_dir.is_dir():
      raise FileNotFoundError( f'Image directory "{self.image_dir}" does not exist.' )

    extensions = tuple( ext.casefold() for ext in extensions )
    self.paths = sorted( p for p in self.image_dir.iterdir() \
                         if p.is_file() and p.suffix.casefold() in extensions )
    if not self.paths:
      raise RuntimeError( f'Found 0 files in {self.image_dir}. Supported extensions are: ' + ','.join( extensions ) )

    self.num_workers = max( int( num_workers ), 1 )
    self.shuffle_on_reset = shuffle_on_reset
    self.index = 0

    if shuffle_on_reset:
      self.shuffle()

  def __len__( self ):
    return len( self.paths )

  def shuffle( self ):
    random.shuffle( self.paths )

  def reset_index( self ):
    self.index = 0

  @staticmethod
  def get_transforms( image_size ):
    return transforms.Compose( [
      transforms.Resize( ( image_size, image_size, ), interpolation = transforms.InterpolationMode.BILINEAR ),
      transforms.ToTensor(),
      transforms.Normalize( mean = ( .5, .5, .5, ), std = ( .5, .5, .5, ) )
    ] )

  def load_image( self, path, image_size ):
    """One [H, W, 3] tensor in [-1,1]."""
    with Image.open( path ) as img:
      img = img.convert( 'RGB' )
      return self.get_transforms( image_size )( img ).permute( 1, 2, 0 )

  def minibatch( self, size, image_size ):
    if size > len( self.paths ):
      message = f'Requested a minibatch of {size} images but "{self.image_dir}" only holds {len( self.paths )}.'
      raise ValueError( message )

    if self.index + size > len( self.paths ):
      self.reset_index()
      if self.shuffle_on_reset:
        self.shuffle()

    paths = self.paths[ self.index:self.index + size ]
    self.index += size

    images = [ None ] * size
    def _load( idx ):
      images[ idx ] = self.load_image( paths[ idx ], image_size )

    with ThreadPoolExecutor( max_workers = min( self.num_workers, size ) ) as executor:
      # surface the first worker exception, if any
      for _ in executor.map( _load, range( size ) ):
        pass

    return torch.stack( images, dim = 0 )
