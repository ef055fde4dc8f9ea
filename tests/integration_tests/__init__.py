"""Receipt printer integration test framework.

Scenarios run through the real service layer; only the device transport is
replaced by the virtual printer emulator.
"""
