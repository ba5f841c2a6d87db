"""argparse command shell for RTMX."""
