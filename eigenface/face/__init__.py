"""Face building blocks (detector/corpus/eigenspace/annotator).

`FaceRecognizer` in `eigenface.face.recognizer` wires them into the
detect -> normalize -> recognize -> annotate pipeline.
"""
