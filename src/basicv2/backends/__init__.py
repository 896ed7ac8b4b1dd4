"""Backends for program output generation (PRG export)."""

from .prg import LOAD_ADDRESS, decode_program, encode_line_body, encode_program, save_prg_file

__all__ = ["LOAD_ADDRESS", "decode_program", "encode_line_body", "encode_program", "save_prg_file"]
