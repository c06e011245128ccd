"""Stage classes for the two pipelines.

install/      runs as root from the live medium against the target disk
postinstall/  runs as the provisioned user after the first boot
"""
