# Copyright (C) Istituto Italiano di Tecnologia (IIT). All rights reserved.


class UsageError(RuntimeError):
    """The caller violated the build/finalize sequencing or asked for something the model does not have."""


class IncompatibleContextError(UsageError, TypeError):
    """The context handed to the tree was not created by a compatible multibody model."""


class InvariantError(ValueError):
    """Wrong sizes passed by the caller, or an internal consistency check failed."""


def check_shape(name: str, value, expected: tuple) -> None:
    """Raises InvariantError if value.shape differs from expected

    Args:
        name (str): the argument name used in the message
        value: an object with a shape
        expected (tuple): the expected shape
    """
    shape = tuple(value.shape)
    if shape != tuple(expected):
        raise InvariantError(f"{name} has shape {shape}, expected {tuple(expected)}")
