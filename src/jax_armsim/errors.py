"""Exceptions shared by the recorder, scrubber and telemetry estimator."""


class FrameShapeError(ValueError):
    """A recorded frame does not match the shape of the live rig."""
