from src.core.documents.number_generator import DocumentNumberGenerator, SequenceAllocator

__all__ = ["DocumentNumberGenerator", "SequenceAllocator"]
