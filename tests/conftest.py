import sys
import os

# backend/ modules are imported flat, as server.py does
sys.path.insert(0, os.path.join(os.path.dirname(__file__), "..", "backend"))

# scripts/ for the compile_courses CLI
sys.path.insert(0, os.path.join(os.path.dirname(__file__), "..", "scripts"))
