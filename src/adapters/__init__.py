"""Adapters: PowerShell/HPCMSL, installers, archive and exporters."""
