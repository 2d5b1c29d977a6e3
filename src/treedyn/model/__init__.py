# Copyright (C) Istituto Italiano di Tecnologia (IIT). All rights reserved.

from .body import Body, RigidBody, SpatialInertia
from .body_node import BodyNode, BodyNodeWelded
from .context import MultibodyTreeContext
from .force_elements import ForceElement, UniformGravityFieldElement
from .frame import BodyFrame, FixedOffsetFrame, Frame, make_pose
from .joints import Joint, JointActuator, PrismaticJoint, RevoluteJoint, WeldJoint
from .mobilizers import (
    Mobilizer,
    PrismaticMobilizer,
    QuaternionFloatingMobilizer,
    RevoluteMobilizer,
    WeldMobilizer,
)
from .model_instance import ModelInstance
from .multibody_forces import MultibodyForces
from .multibody_tree import MultibodyTree
from .topology import MultibodyTreeTopology
