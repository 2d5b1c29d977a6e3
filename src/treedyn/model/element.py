# Copyright (C) Istituto Italiano di Tecnologia (IIT). All rights reserved.

from typing import Optional

from treedyn.core.errors import UsageError


class MultibodyTreeElement:
    """Common base of bodies, frames, mobilizers, joints, force elements and actuators.

    An element gets its index and its parent tree when it is added to a MultibodyTree,
    and its topological information when the tree is finalized.
    """

    def __init__(self, model_instance: Optional[int] = None) -> None:
        self._parent_tree = None
        self._index: Optional[int] = None
        self._model_instance = model_instance

    @property
    def index(self) -> int:
        if self._index is None:
            raise UsageError(
                f"This {type(self).__name__} was not added to a MultibodyTree."
            )
        return self._index

    @property
    def model_instance(self) -> Optional[int]:
        return self._model_instance

    def set_model_instance(self, model_instance: int) -> None:
        self._model_instance = model_instance

    def set_parent_tree(self, tree, index: int) -> None:
        if self._parent_tree is not None:
            raise UsageError(
                f"This {type(self).__name__} already belongs to a MultibodyTree."
            )
        self._parent_tree = tree
        self._index = index

    def get_parent_tree(self):
        if self._parent_tree is None:
            raise UsageError(
                f"This {type(self).__name__} was not added to a MultibodyTree."
            )
        return self._parent_tree

    def has_parent_tree(self) -> bool:
        return self._parent_tree is not None

    def has_this_parent_tree_or_throw(self, tree) -> None:
        if self._parent_tree is not tree:
            raise UsageError(
                "This multibody element does not belong to the supplied MultibodyTree."
            )

    def set_topology(self, topology) -> None:
        """Binds the element to the compiled topology of its tree"""
        self._do_set_topology(topology)

    def _do_set_topology(self, topology) -> None:
        pass
