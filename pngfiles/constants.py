import struct


# Magic
PNG_SIGNATURE = b"\x89PNG\r\n\x1a\n"  # 8 bytes: 89 50 4E 47 0D 0A 1A 0A

# Custom file chunk type. Case of each letter sets the chunk property bits:
#  f  ancillary     (lowercase)
#  i  private       (lowercase)
#  L  reserved bit  (uppercase, must be 0)
#  e  safe-to-copy  (lowercase)
FILE_CHUNK_TYPE = b"fiLe"

# Chunk layout
# struct: >I4s
#  - length u32 (payload only)
#  - type[4]
# followed by payload[length] and crc32 u32 over type + payload
CHUNK_HDR_STRUCT = struct.Struct(">I4s")
CHUNK_CRC_STRUCT = struct.Struct(">I")

# Largest payload the u32 length field can describe
MAX_CHUNK_LENGTH = 0xFFFFFFFF


# File record layout: key_len u32 | key | data_len u32 | deflate data
RECORD_LEN_STRUCT = struct.Struct(">I")
MAX_KEY_LENGTH = 0xFFFFFFFF

# Raw deflate stream (no zlib header/trailer), best compression
DEFLATE_LEVEL = 9
DEFLATE_WBITS = -15
