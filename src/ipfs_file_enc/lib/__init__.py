"""Core share/download machinery: keys, nodes, streams and the pipeline."""
