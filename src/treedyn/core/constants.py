# Copyright (C) Istituto Italiano di Tecnologia (IIT). All rights reserved.

from enum import Enum


class TreeState(Enum):
    """Lifecycle of a MultibodyTree. Transitions are one way."""

    BUILDING = "building"
    FINALIZED = "finalized"
    FAILED = "failed"


WORLD_INDEX = 0
WORLD_BODY_NAME = "WorldBody"

WORLD_MODEL_INSTANCE = 0
WORLD_MODEL_INSTANCE_NAME = "WorldModelInstance"
DEFAULT_MODEL_INSTANCE = 1
DEFAULT_MODEL_INSTANCE_NAME = "DefaultModelInstance"

DEFAULT_GRAVITY = (0.0, 0.0, -9.81)
