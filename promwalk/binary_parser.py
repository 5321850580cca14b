"""
Binary (length-delimited protocol buffer) exposition format.

The ``io.prometheus.client`` message schema is registered at import time
from a FileDescriptorProto. It mirrors the client model this build consumes,
which does not carry histogram fields yet: histogram families decode with
zero metrics.
"""
from typing import BinaryIO, Optional
import logging

from google.protobuf import descriptor_pb2, descriptor_pool, message_factory
from google.protobuf.message import DecodeError as ProtobufDecodeError
from google.protobuf.message import Message

from promwalk.errors import DecodeError
from promwalk.metrics import (
    Counter,
    Gauge,
    Metric,
    MetricFamily,
    MetricType,
    Quantile,
    Summary,
)

logger = logging.getLogger(__name__)

PROTO_PACKAGE = "io.prometheus.client"

_FieldProto = descriptor_pb2.FieldDescriptorProto

# (field name, number, type, label, message/enum type name)
_MESSAGES = {
    "LabelPair": [
        ("name", 1, _FieldProto.TYPE_STRING, _FieldProto.LABEL_OPTIONAL, None),
        ("value", 2, _FieldProto.TYPE_STRING, _FieldProto.LABEL_OPTIONAL, None),
    ],
    "Gauge": [
        ("value", 1, _FieldProto.TYPE_DOUBLE, _FieldProto.LABEL_OPTIONAL, None),
    ],
    "Counter": [
        ("value", 1, _FieldProto.TYPE_DOUBLE, _FieldProto.LABEL_OPTIONAL, None),
    ],
    "Quantile": [
        ("quantile", 1, _FieldProto.TYPE_DOUBLE, _FieldProto.LABEL_OPTIONAL, None),
        ("value", 2, _FieldProto.TYPE_DOUBLE, _FieldProto.LABEL_OPTIONAL, None),
    ],
    "Summary": [
        ("sample_count", 1, _FieldProto.TYPE_UINT64, _FieldProto.LABEL_OPTIONAL, None),
        ("sample_sum", 2, _FieldProto.TYPE_DOUBLE, _FieldProto.LABEL_OPTIONAL, None),
        ("quantile", 3, _FieldProto.TYPE_MESSAGE, _FieldProto.LABEL_REPEATED, "Quantile"),
    ],
    "Untyped": [
        ("value", 1, _FieldProto.TYPE_DOUBLE, _FieldProto.LABEL_OPTIONAL, None),
    ],
    "Metric": [
        ("label", 1, _FieldProto.TYPE_MESSAGE, _FieldProto.LABEL_REPEATED, "LabelPair"),
        ("gauge", 2, _FieldProto.TYPE_MESSAGE, _FieldProto.LABEL_OPTIONAL, "Gauge"),
        ("counter", 3, _FieldProto.TYPE_MESSAGE, _FieldProto.LABEL_OPTIONAL, "Counter"),
        ("summary", 4, _FieldProto.TYPE_MESSAGE, _FieldProto.LABEL_OPTIONAL, "Summary"),
        ("untyped", 5, _FieldProto.TYPE_MESSAGE, _FieldProto.LABEL_OPTIONAL, "Untyped"),
        ("timestamp_ms", 6, _FieldProto.TYPE_INT64, _FieldProto.LABEL_OPTIONAL, None),
    ],
    "MetricFamily": [
        ("name", 1, _FieldProto.TYPE_STRING, _FieldProto.LABEL_OPTIONAL, None),
        ("help", 2, _FieldProto.TYPE_STRING, _FieldProto.LABEL_OPTIONAL, None),
        ("type", 3, _FieldProto.TYPE_ENUM, _FieldProto.LABEL_OPTIONAL, "MetricType"),
        ("metric", 4, _FieldProto.TYPE_MESSAGE, _FieldProto.LABEL_REPEATED, "Metric"),
    ],
}

# wire enum values
_WIRE_TYPES = [("COUNTER", 0), ("GAUGE", 1), ("SUMMARY", 2), ("UNTYPED", 3), ("HISTOGRAM", 4)]


def _build_file_descriptor() -> descriptor_pb2.FileDescriptorProto:
    file_proto = descriptor_pb2.FileDescriptorProto(
        name="promwalk/metrics.proto",
        package=PROTO_PACKAGE,
        syntax="proto2",
    )

    enum_proto = file_proto.enum_type.add(name="MetricType")
    for name, number in _WIRE_TYPES:
        enum_proto.value.add(name=name, number=number)

    for message_name, fields in _MESSAGES.items():
        message_proto = file_proto.message_type.add(name=message_name)
        for field_name, number, field_type, label, type_name in fields:
            field_proto = message_proto.field.add(
                name=field_name, number=number, type=field_type, label=label
            )
            if type_name:
                field_proto.type_name = f".{PROTO_PACKAGE}.{type_name}"

    return file_proto


_pool = descriptor_pool.DescriptorPool()
_pool.AddSerializedFile(_build_file_descriptor().SerializeToString())

MetricFamilyMessage = message_factory.GetMessageClass(
    _pool.FindMessageTypeByName(f"{PROTO_PACKAGE}.MetricFamily")
)


def _read_varint(stream: BinaryIO) -> Optional[int]:
    """Read a base-128 varint; None on a clean end of stream."""
    result = 0
    shift = 0
    while True:
        byte = stream.read(1)
        if not byte:
            if shift == 0:
                return None
            raise DecodeError("Truncated message length prefix")
        result |= (byte[0] & 0x7F) << shift
        if not byte[0] & 0x80:
            return result
        shift += 7
        if shift >= 64:
            raise DecodeError("Message length prefix is too long")


def _encode_varint(value: int) -> bytes:
    out = bytearray()
    while True:
        bits = value & 0x7F
        value >>= 7
        if value:
            out.append(bits | 0x80)
        else:
            out.append(bits)
            return bytes(out)


def write_delimited(message: Message, stream: BinaryIO) -> None:
    """Write a message preceded by its varint length."""
    payload = message.SerializeToString()
    stream.write(_encode_varint(len(payload)))
    stream.write(payload)


class BinaryMetricDataParser:
    """
    Reads one delimited MetricFamily message per call to parse().

    The stream belongs to the caller and is never closed here.
    """

    def __init__(self, stream: BinaryIO):
        self.stream = stream

    def parse(self) -> Optional[Message]:
        """
        Returns:
            The next decoded message, or None at end of stream.

        Raises:
            DecodeError: if the data is truncated or malformed
        """
        size = _read_varint(self.stream)
        if size is None:
            return None

        payload = self.stream.read(size)
        if len(payload) != size:
            raise DecodeError(f"Truncated message: expected {size} bytes, got {len(payload)}")

        message = MetricFamilyMessage()
        try:
            message.ParseFromString(payload)
        except ProtobufDecodeError as e:
            raise DecodeError(f"Malformed MetricFamily message: {e}") from e
        return message


def convert_metric_family(family: Message) -> MetricFamily:
    """
    Map a decoded MetricFamily message onto the canonical model.

    Raises:
        DecodeError: if the message does not describe a valid family
    """
    wire_type = MetricFamilyMessage.DESCRIPTOR.fields_by_name["type"].enum_type
    type_name = wire_type.values_by_number[family.type].name
    if type_name == "UNTYPED":
        raise DecodeError(f"Metric family '{family.name}' has unsupported type UNTYPED")
    metric_type = MetricType.from_name(type_name)

    try:
        metrics = [_convert_metric(family.name, metric_type, message) for message in family.metric]
        return MetricFamily(
            name=family.name,
            type=metric_type,
            help=family.help,
            metrics=tuple(m for m in metrics if m is not None)
        )
    except ValueError as e:
        raise DecodeError(f"Invalid metric family '{family.name}': {e}") from e


def _convert_metric(name: str, metric_type: MetricType, message: Message) -> Optional[Metric]:
    labels = {pair.name: pair.value for pair in message.label}

    match metric_type:
        case MetricType.COUNTER:
            return Counter(name=name, labels=labels, value=message.counter.value)
        case MetricType.GAUGE:
            return Gauge(name=name, labels=labels, value=message.gauge.value)
        case MetricType.SUMMARY:
            summary = message.summary
            return Summary(
                name=name,
                labels=labels,
                sample_count=summary.sample_count,
                sample_sum=summary.sample_sum,
                quantiles=tuple(Quantile(q.quantile, q.value) for q in summary.quantile),
            )
        case MetricType.HISTOGRAM:
            # the registered schema has no histogram field
            logger.debug(f"Histogram metric of '{name}' has no binary mapping, dropped")
            return None
