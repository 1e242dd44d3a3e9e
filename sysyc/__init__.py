"""A small SysY compiler library: syntax tree to Koopa IR, and Koopa IR to RISC-V assembly."""

__version__ = "0.1.0"