# -*- coding: UTF-8 -*-

"""Progressive growing: the shared growth state and the ProGAN discriminator.
"""

#++++++++++++++++++++++++++++++++++++++++++++++++++++++++++++++++++++++++++++++#

from . import base
from . import architectures

#++++++++++++++++++++++++++++++++++++++++++++++++++++++++++++++++++++++++++++++#
