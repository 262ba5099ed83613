# -*- coding: UTF-8 -*-

import os.path
from setuptools import setup

def readme( ):

  with open( os.path.abspath(
    os.path.join(
      os.path.dirname( __file__ ),
      'README.md' ) ) ) as f:

    return f.read( )

setup(
  name = 'pgstyle',
  version = '0.1.0',
  description = "Progressively growing, style-based GAN in PyTorch",
  long_description = readme( ),
  long_description_content_type = 'text/markdown',
  keywords = 'GAN StyleGAN ProGAN ML generative neural model',
  packages = [
    'pgstyle',
    'pgstyle.utils',
    'pgstyle.progan',
    'pgstyle.stylegan',
  ],
  dependency_links = [ ],
  install_requires = [
    'numpy >= 1.17.2',
    'pillow >= 6.2.0',
    'matplotlib >= 3.1.1',
    'torch >= 1.10.0',
    'torchvision >= 0.11.0',
    'tqdm',
  ],
  extras_require = {
    'test': [ 'pytest' ],
  },
  python_requires = '>= 3.6',
  include_package_data = True,
  zip_safe = False
)
