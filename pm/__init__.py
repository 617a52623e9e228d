"""pm - command-line front end for plugsync."""
