# Copyright (C) Istituto Italiano di Tecnologia (IIT). All rights reserved.

from treedyn.core import (
    IncompatibleContextError,
    InvariantError,
    RBDAlgorithms,
    TreeState,
    UsageError,
)
from treedyn.model import (
    BodyFrame,
    FixedOffsetFrame,
    MultibodyForces,
    MultibodyTree,
    PrismaticJoint,
    RevoluteJoint,
    RigidBody,
    SpatialInertia,
    UniformGravityFieldElement,
    WeldJoint,
    make_pose,
)
