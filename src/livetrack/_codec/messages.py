"""Protobuf message classes of the wire format.

The descriptor mirrors ``live_track.proto`` and is registered in a private
pool, so no generated ``_pb2`` module is needed and nothing leaks into the
default pool.
"""

from __future__ import annotations

from google.protobuf import descriptor_pb2, descriptor_pool, message_factory

_PACKAGE = "livetrack"

_Field = descriptor_pb2.FieldDescriptorProto


def _add_field(
    message: descriptor_pb2.DescriptorProto,
    name: str,
    number: int,
    field_type: int,
    *,
    repeated: bool = False,
    type_name: str | None = None,
) -> None:
    field = message.field.add(
        name=name,
        number=number,
        type=field_type,
        label=_Field.LABEL_REPEATED if repeated else _Field.LABEL_OPTIONAL,
    )
    if type_name is not None:
        field.type_name = f".{_PACKAGE}.{type_name}"
    elif repeated and field_type not in (_Field.TYPE_STRING, _Field.TYPE_BYTES):
        field.options.packed = True


def _file_descriptor() -> descriptor_pb2.FileDescriptorProto:
    proto = descriptor_pb2.FileDescriptorProto(
        name="livetrack/_codec/live_track.proto",
        package=_PACKAGE,
        syntax="proto2",
    )

    extra = proto.message_type.add(name="LiveExtra")
    _add_field(extra, "index", 1, _Field.TYPE_UINT32)
    _add_field(extra, "speed", 2, _Field.TYPE_DOUBLE)
    _add_field(extra, "message", 3, _Field.TYPE_STRING)

    track = proto.message_type.add(name="LiveTrack")
    _add_field(track, "id", 1, _Field.TYPE_UINT64)
    _add_field(track, "name", 2, _Field.TYPE_STRING)
    _add_field(track, "lat", 3, _Field.TYPE_SINT32, repeated=True)
    _add_field(track, "lon", 4, _Field.TYPE_SINT32, repeated=True)
    _add_field(track, "alt", 5, _Field.TYPE_SINT32, repeated=True)
    _add_field(track, "time_sec", 6, _Field.TYPE_UINT64, repeated=True)
    _add_field(track, "flags", 7, _Field.TYPE_UINT32, repeated=True)
    _add_field(track, "extra", 8, _Field.TYPE_MESSAGE, repeated=True, type_name="LiveExtra")

    group = proto.message_type.add(name="LiveDifferentialTrackGroup")
    _add_field(group, "tracks", 1, _Field.TYPE_MESSAGE, repeated=True, type_name="LiveTrack")
    _add_field(group, "incremental", 2, _Field.TYPE_BOOL)

    meta = proto.message_type.add(name="MetaGroups")
    _add_field(meta, "groups", 1, _Field.TYPE_BYTES, repeated=True)

    return proto


_pool = descriptor_pool.DescriptorPool()
_pool.AddSerializedFile(_file_descriptor().SerializeToString())


def _message_class(name: str) -> type:
    return message_factory.GetMessageClass(_pool.FindMessageTypeByName(f"{_PACKAGE}.{name}"))


LiveExtraMessage = _message_class("LiveExtra")
LiveTrackMessage = _message_class("LiveTrack")
LiveDifferentialTrackGroupMessage = _message_class("LiveDifferentialTrackGroup")
MetaGroupsMessage = _message_class("MetaGroups")
