import os

import imageio
import numpy as np


class Recorder:
    def __init__(self, output_file='output.gif', fps=30):
        self.output_file = output_file
        self.fps = fps
        self.frames = []

    def add_frame(self, frame):
        """
        Add a frame to the recorder.
        frame should be an (h, w, 3) NumPy array, uint8 or float in [0, 1].
        """
        frame = np.asarray(frame)
        if frame.dtype != np.uint8:
            frame = (np.clip(frame, 0.0, 1.0) * 255).astype(np.uint8)
        self.frames.append(frame)

    def save(self):
        """Write the accumulated frames to the animation file."""
        if not self.frames:
            raise ValueError("no frames to save")
        if os.path.splitext(self.output_file)[1].lower() == '.gif':
            # the GIF writer takes a per-frame duration in ms
            imageio.mimsave(self.output_file, self.frames, duration=1000.0 / self.fps, loop=0)
        else:
            imageio.mimsave(self.output_file, self.frames, fps=self.fps)
