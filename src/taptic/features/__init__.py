from .frame_assembler import FrameAssembler, compute_level, pcm16_to_float

__all__ = ["FrameAssembler", "compute_level", "pcm16_to_float"]
