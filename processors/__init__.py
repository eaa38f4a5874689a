"""Adapters that run external document processors as pipeline steps.

A processor describes its own parameters as JSON. The packages here turn
that description into an editable field schema, marshal submitted values
back into the processor's parameter payload, and drive one run through a
local container or a remote worker into the platform's snapshot workspace.
"""
