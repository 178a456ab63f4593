"""Client for the Graphite render, find and tag autocomplete endpoints."""