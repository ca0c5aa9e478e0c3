"""protoc plugin that compiles protobuf descriptors into pydantic models."""
