"""Span attribute keys and values for Kafka messaging spans."""

MESSAGING_SYSTEM = "messaging.system"
MESSAGING_DESTINATION = "messaging.destination"
MESSAGING_DESTINATION_KIND = "messaging.destination_kind"
MESSAGING_OPERATION = "messaging.operation"

KAFKA = "kafka"
DESTINATION_KIND_TOPIC = "topic"

OPERATION_PROCESS = "process"
OPERATION_RECEIVE = "receive"
