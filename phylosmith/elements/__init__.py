from .partition import Partition
from .partition_set import PartitionSet

__all__ = ["Partition", "PartitionSet"]
