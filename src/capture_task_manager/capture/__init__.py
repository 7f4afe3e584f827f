"""Dataset capture: locating datasets on instrument shares and marking them captured."""
