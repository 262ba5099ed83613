# -*- coding: UTF-8 -*-

import numpy as np
import pytest
import torch

from pgstyle.utils.summary_utils import make_image_grid, MetricsSink

#++++++++++++++++++++++++++++++++++++++++++++++++++++++++++++++++++++++++++++++#

def test_image_grid_layout():
  images = -torch.ones( 3, 4, 4, 3 )
  images[ 1 ] = 1.
  grid = make_image_grid( images, rows = 2, cols = 2, pad = 1 )
  assert grid.shape == ( 2*5 + 1, 2*5 + 1, 3, )
  assert grid.min() == 0. and grid.max() == 1.
  assert np.all( grid[ 1:5, 6:10 ] == 1. )

def test_image_grid_rejects_overflow():
  with pytest.raises( ValueError ):
    make_image_grid( torch.zeros( 5, 4, 4, 3 ), rows = 2, cols = 2 )

def test_sink_writes_everything( tmp_path ):
  sink = MetricsSink( tmp_path )
  sink.add_scalar( 'lv1/loss_gen', torch.tensor( .7 ), 0 )
  sink.add_scalar( 'lv1/loss_gen', .6, 1 )
  image_path = sink.add_image( 'lv1/samples', torch.zeros( 4, 4, 4, 3 ), 2, 2, 3 )
  hist_path = sink.add_histogram( 'gen/w', torch.randn( 100 ), 3 )
  sink.flush()

  assert image_path.name == 'lv1_samples_00000003.png' and image_path.exists()
  assert hist_path.exists()
  scalars = np.load( tmp_path / 'scalars.npz' )
  assert np.allclose( scalars[ 'lv1_loss_gen' ], [ [ 0, .7 ], [ 1, .6 ] ] )
