"""
Interface package: communication protocols for the relocation engine.

Modules:
    options — UCI option table (option / setoption)
    uci     — Universal Chess Interface (UCI) protocol handler.
              Reads commands from stdin, writes responses to stdout.
              Can be run as a standalone script: python interface/uci.py
"""
