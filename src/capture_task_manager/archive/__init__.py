"""Archive upload orchestration and pre-upload compression."""
