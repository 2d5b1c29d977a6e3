# Copyright (C) Istituto Italiano di Tecnologia (IIT). All rights reserved.

from .constants import TreeState
from .errors import IncompatibleContextError, InvariantError, UsageError
from .rbd_algorithms import RBDAlgorithms
from .spatial_math import SpatialMath
