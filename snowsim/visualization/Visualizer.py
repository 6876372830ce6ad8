# visualization/Visualizer.py
import numpy as np
import taichi as ti


class Visualizer:
    """Draws particle snapshots with Taichi's GUI, coloured by their packed RGB tag."""

    def __init__(self, width=512, height=512, show_gui=True, background=0xE6CCCC):
        self.res = (width, height)
        self.background = background
        self.gui = ti.GUI("Snow MLS-MPM", self.res, background_color=background, show_gui=show_gui)

    @property
    def running(self):
        return self.gui.running and not self.gui.get_event(ti.GUI.ESCAPE, ti.GUI.EXIT)

    def render(self, info, t):
        """Draw one frame and return it as an (h, w, 3) uint8 image."""
        self.gui.clear(self.background)
        self.gui.circles(info['position'], radius=2, color=info['tag'].astype(np.uint32))
        self.gui.text(f"Time: {t:.3f}s", (0.05, 0.95), font_size=20, color=0x000000)

        # get_image() is (w, h, 4) float32 with y pointing up
        img = self.gui.get_image()
        frame = (np.rot90(img[:, :, :3]) * 255).astype(np.uint8)

        self.gui.show()
        return frame
