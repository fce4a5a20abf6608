"""
Protobuf wire message for BEAM shares.

The sharelog payload is a proto2 ``sharebase.BeamMsg``. The message class is
built at import time from a descriptor so no generated ``_pb2`` module or
``protoc`` step is needed.
"""

from google.protobuf import descriptor_pb2, descriptor_pool, message_factory

_FieldProto = descriptor_pb2.FieldDescriptorProto

PROTO_PACKAGE = "sharebase"
MESSAGE_NAME = "BeamMsg"

# (number, proto name, python attribute, type, required)
BEAM_MSG_FIELDS = (
    (1, "version", "version", _FieldProto.TYPE_UINT32, True),
    (2, "workerHashId", "worker_hash_id", _FieldProto.TYPE_INT64, True),
    (3, "userId", "user_id", _FieldProto.TYPE_INT32, True),
    (4, "status", "status", _FieldProto.TYPE_INT32, True),
    (5, "timestamp", "timestamp", _FieldProto.TYPE_INT64, True),
    (6, "ip", "ip", _FieldProto.TYPE_STRING, True),
    (7, "inputPrefix", "input_prefix", _FieldProto.TYPE_INT64, False),
    (8, "shareDiff", "share_diff", _FieldProto.TYPE_INT64, False),
    (9, "blockBits", "block_bits", _FieldProto.TYPE_UINT32, False),
    (10, "height", "height", _FieldProto.TYPE_INT32, False),
    (11, "nonce", "nonce", _FieldProto.TYPE_INT64, False),
    (12, "sessionId", "session_id", _FieldProto.TYPE_INT32, False),
    (13, "outputHash", "output_hash", _FieldProto.TYPE_INT32, False),
    (14, "extUserId", "ext_user_id", _FieldProto.TYPE_INT32, False),
    (15, "bitsReached", "bits_reached", _FieldProto.TYPE_UINT32, False),
)

# proto field name -> model attribute name
PROTO_TO_ATTR = {proto: attr for _, proto, attr, _, _ in BEAM_MSG_FIELDS}


def _build_file_descriptor() -> descriptor_pb2.FileDescriptorProto:
    file_proto = descriptor_pb2.FileDescriptorProto(
        name="sharebase/beam.proto",
        package=PROTO_PACKAGE,
        syntax="proto2",
    )
    msg = file_proto.message_type.add(name=MESSAGE_NAME)
    for number, name, _, field_type, required in BEAM_MSG_FIELDS:
        msg.field.add(
            name=name,
            number=number,
            type=field_type,
            label=_FieldProto.LABEL_REQUIRED if required else _FieldProto.LABEL_OPTIONAL,
        )
    return file_proto


_POOL = descriptor_pool.DescriptorPool()
_POOL.AddSerializedFile(_build_file_descriptor().SerializeToString())

BeamMsg = message_factory.GetMessageClass(
    _POOL.FindMessageTypeByName(f"{PROTO_PACKAGE}.{MESSAGE_NAME}")
)
