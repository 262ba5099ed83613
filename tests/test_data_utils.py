# -*- coding: UTF-8 -*-

import numpy as np
import pytest
import torch
from PIL import Image

from pgstyle.utils.data_utils import ImageLoader, nhwc_to_nchw, nchw_to_nhwc, to_image_batch

#++++++++++++++++++++++++++++++++++++++++++++++++++++++++++++++++++++++++++++++#

@pytest.fixture
def image_dir( tmp_path ):
  rng = np.random.RandomState( 0 )
  for n in range( 6 ):
    arr = rng.randint( 0, 256, size = ( 16, 16, 3 ), dtype = np.uint8 )
    Image.fromarray( arr ).save( tmp_path / f'{n}.png' )
  ( tmp_path / 'notes.txt' ).write_text( 'not an image' )
  return tmp_path

def test_minibatch_shape_and_range( image_dir ):
  loader = ImageLoader( image_dir, num_workers = 2 )
  assert len( loader ) == 6
  xb = loader.minibatch( 4, image_size = 8 )
  assert xb.shape == ( 4, 8, 8, 3, )
  assert xb.dtype == torch.float32
  assert xb.min() >= -1. and xb.max() <= 1.

def test_minibatch_wraps_around( image_dir ):
  loader = ImageLoader( image_dir, num_workers = 2, shuffle_on_reset = False )
  first = loader.minibatch( 4, image_size = 4 )
  second = loader.minibatch( 4, image_size = 4 )
  # only 2 files were left, so the traversal restarted from the beginning
  assert loader.index == 4
  assert torch.allclose( first, second )

def test_minibatch_larger_than_dataset( image_dir ):
  with pytest.raises( ValueError ):
    ImageLoader( image_dir ).minibatch( 7, image_size = 4 )

def test_missing_or_empty_directory( tmp_path ):
  with pytest.raises( FileNotFoundError ):
    ImageLoader( tmp_path / 'nope' )
  with pytest.raises( RuntimeError ):
    ImageLoader( tmp_path )

def test_layout_conversion():
  x = torch.randn( 2, 3, 5, 7 ) * 3.
  assert torch.equal( nhwc_to_nchw( nchw_to_nhwc( x ) ), x )
  images = to_image_batch( x )
  assert images.shape == ( 2, 5, 7, 3, )
  assert images.min() >= -1. and images.max() <= 1.
