"""Format constants shared by the codec, container and resource parsers.

Layouts here were recovered from sample data; treat them as format
facts to be checked against real archives, not derived values.
"""

from __future__ import annotations

# Yaz0 --------------------------------------------------------------------
YAZ0_MAGIC = b"Yaz0"
YAZ0_HEADER_SIZE = 0x10
YAZ0_MAX_DISTANCE = 0x1000
YAZ0_MIN_MATCH = 3
YAZ0_MAX_SHORT_MATCH = 0x11  # n in 1..15 encodes length n + 2
YAZ0_MAX_MATCH = 0xFF + 0x12

# RARC --------------------------------------------------------------------
RARC_MAGIC = b"RARC"
RARC_HEADER_SIZE = 0x20
RARC_INFO_SIZE = 0x20
RARC_DIR_NODE_SIZE = 0x10
RARC_FILE_ENTRY_SIZE = 0x14
RARC_ROOT_TYPE = b"ROOT"
RARC_DIRECTORY_ID = 0xFFFF

RARC_FLAG_FILE = 0x01
RARC_FLAG_DIRECTORY = 0x02
RARC_FLAG_COMPRESSED = 0x04
RARC_FLAG_PRELOAD_MRAM = 0x10
RARC_FLAG_PRELOAD_ARAM = 0x20
RARC_FLAG_LOAD_DVD = 0x40
RARC_FLAG_YAZ0 = 0x80

# Chunked resources --------------------------------------------------------
RESOURCE_HEADER_SIZE = 0x20
CHUNK_HEADER_SIZE = 8
NO_INDEX = -1

KIND_TEXTURE = b"UVTX"
KIND_TEXTURE_SEQUENCE = b"UVTS"
KIND_TERRAIN = b"UVTR"
KIND_ENVIRONMENT = b"UVEN"
KIND_MODEL = b"BMD3"
KIND_ANIMATION = b"BTK1"
KIND_MATERIAL_SWAP = b"BMT3"

ANIMATION_SUFFIX = ".btk"
MATERIAL_SWAP_SUFFIX = ".bmt"

MAX_SCROLL_ANIMS = 2
